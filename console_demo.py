"""
Offline console demo: chat with the booking bot in the terminal.

Uses the real dialogue controller, availability engine and session registry
on top of the in-memory store seeded with the default catalog. Replies go to
an outbox instead of WhatsApp. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario cancel
    python console_demo.py --scenario handoff
"""

import argparse
import asyncio

from petcare.chat_service import BookingApp, build_app
from petcare.config import settings

BLUE = "\033[94m"
GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_PHONE = "5511999990000"


class ConsoleSession:
    """Drives one customer conversation from the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "booking": ["oi", "1", "Maria", "Rex", "1", "1", "1", "1", "1"],
        "cancel": ["1", "Maria", "Rex", "2", "2", "1", "1", "1", "2", "1", "1"],
        "handoff": ["3", "alguém aí?"],
        "back": ["1", "Maria", "Rex", "voltar", "1", "1"],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, phone: str = DEMO_PHONE) -> None:
        self.phone = phone
        self.app: BookingApp = build_app()
        self._shown = 0

    def bot_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.business.name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _show_new_messages(self) -> None:
        """Print outbox messages for this phone not shown yet, replies and reminders alike."""
        pending = self.app.messenger.messages_for(self.phone)[self._shown:]
        for text in pending:
            self.bot_say(text)
        self._shown += len(pending)

    async def _process_input(self, text: str) -> None:
        reply = await self.app.chat.handle_inbound(self.phone, text)
        if reply is None:
            self.system_log("No reply (bot paused for human handoff)")
        self._show_new_messages()
        session = await self.app.controller.get_session(self.phone)
        self.system_log(f"State: {session.state.value}")

    async def _summary(self) -> None:
        appointments = sorted(self.app.store.appointments.values(), key=lambda a: a.id)
        for appointment in appointments:
            self.system_log(
                f"#{appointment.id} {appointment.date} {appointment.time} "
                f"{appointment.service} ({appointment.status.value})"
            )
        self.system_log(f"Messages sent: {len(self.app.messenger.sent)}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"PETCARE BOOKING BOT - Scenario: {scenario}")
        for step in steps:
            print(f"\n{BLUE}[Cliente] {RESET}{step}")
            await self._process_input(step)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        await self._summary()
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("PETCARE BOOKING BOT - Console Demo")
        print(f"{BOLD}  Type 'quit' to exit, 'remind' to run the reminder check now{RESET}")

        # reminder worker shares the store with the conversation
        stop = asyncio.Event()
        worker = asyncio.create_task(self.app.reminders.run_forever(stop))
        try:
            while True:
                user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Cliente] {RESET}")).strip()
                if not user_input:
                    continue
                if user_input.lower() in ("quit", "exit", "q"):
                    print(f"\n{DIM}Session ended.{RESET}")
                    break
                if user_input.lower() == "remind":
                    sent = await self.app.reminders.run_once()
                    self.system_log(f"Reminders sent: {sent}")
                    self._show_new_messages()
                    continue
                if len(user_input) > self.MAX_INPUT_LENGTH:
                    self.bot_say("Mensagem muito longa. Por favor, responda com o número da opção.")
                    continue

                await self._process_input(user_input)
        finally:
            stop.set()
            await worker

        await self._summary()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
