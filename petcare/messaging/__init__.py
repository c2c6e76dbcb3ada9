from petcare.messaging.base import (
    CancellationNotifier,
    LoggingNotifier,
    MessagingError,
    Messenger,
    OutboxMessenger,
)
from petcare.messaging.evolution_client import (
    EvolutionMessenger,
    WebhookCancellationNotifier,
    to_whatsapp_jid,
)

__all__ = [
    "CancellationNotifier",
    "EvolutionMessenger",
    "LoggingNotifier",
    "MessagingError",
    "Messenger",
    "OutboxMessenger",
    "WebhookCancellationNotifier",
    "to_whatsapp_jid",
]
