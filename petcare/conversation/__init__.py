from petcare.conversation.session_store import SessionStore
from petcare.conversation.state_machine import DialogueController, Reply

__all__ = [
    "DialogueController",
    "Reply",
    "SessionStore",
]
