"""
Offline console demo: runs the real assistant pipeline without Telegram,
Rasa or ERPNext.

Messages go through the actual guardrails, router, dispatcher, validators
and local customer store. Rasa is replaced by a keyword classifier and
Telegram by a transport that prints replies. Lines starting with ``#`` are
treated as inline keyboard button presses (``#create_customer``).

Usage:
    python console_demo.py
    python console_demo.py --scenario customer
    python console_demo.py --scenario menu
"""

import argparse
import asyncio
import dataclasses
import re
from itertools import count
from typing import Any, Optional

from erpbot.app import AppContext, build_context
from erpbot.config import BackendConfig, settings
from erpbot.schemas.reply_schema import Reply
from erpbot.transport import ChatId

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

CHAT_ID = "console"


class KeywordNLU:
    """Stands in for Rasa: classifies French keywords into the bot's intents."""

    RULES: list[tuple[tuple[str, ...], str, float]] = [
        (("créer un client", "nouveau client", "ajouter un client"), "create_customer", 0.95),
        (("liste des clients", "mes clients", "lister les clients"), "list_customers", 0.92),
        (("créer un devis", "nouveau devis"), "create_quotation", 0.9),
        (("devis",), "get_quotation", 0.88),
        (("factures",), "get_invoices", 0.88),
        (("rapport des ventes", "ventes"), "sales_report", 0.86),
        (("tableau de bord",), "dashboard", 0.85),
        (("aide", "help"), "help", 0.9),
        (("bonjour", "salut"), "greet", 0.97),
    ]
    NAME_PATTERN = re.compile(r"(?:nommé|appelé)\s+([\wÀ-ÿ' -]+?)(?:\s+avec|\s*$)", re.IGNORECASE)

    async def parse_message(self, text: str, session_id: str = "console") -> dict[str, Any]:
        lower = text.lower()
        for keywords, intent, confidence in self.RULES:
            if any(k in lower for k in keywords):
                return {
                    "intent": {"name": intent, "confidence": confidence},
                    "entities": self._entities(text),
                    "text": text,
                }
        return {"intent": {"name": "nlu_fallback", "confidence": 0.4}, "entities": [], "text": text}

    def _entities(self, text: str) -> list[dict[str, Any]]:
        entities = []
        name = self.NAME_PATTERN.search(text)
        if name:
            entities.append({"entity": "customer_name", "value": name.group(1).strip()})
        email = re.search(r"\S+@\S+", text)
        if email:
            entities.append({"entity": "email", "value": email.group(0)})
        return entities

    async def aclose(self) -> None:
        pass


class ConsoleTransport:
    """Prints replies and keyboards instead of calling the Bot API."""

    def __init__(self) -> None:
        self._ids = count(1)

    async def send_message(self, chat_id: ChatId, reply: Reply) -> Optional[int]:
        message_id = next(self._ids)
        self._show(reply, f"#{message_id}")
        return message_id

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        print(f"{DIM}  >> callback {callback_id} acknowledged{RESET}")

    async def edit_message(self, chat_id: ChatId, message_id: int, reply: Reply) -> None:
        self._show(reply, f"#{message_id} (edited)")

    async def delete_message(self, chat_id: ChatId, message_id: int) -> bool:
        print(f"{DIM}  >> message #{message_id} deleted{RESET}")
        return True

    def _show(self, reply: Reply, tag: str) -> None:
        print(f"{GREEN}{BOLD}[Bot {tag}]{RESET} {GREEN}{reply.text}{RESET}")
        for row in reply.keyboard or []:
            print(f"{YELLOW}  " + "  ".join(f"[{b.label} #{b.action}]" for b in row) + RESET)
        if reply.force_reply:
            print(f"{DIM}  >> awaiting a reply to this message{RESET}")


class ConsoleSession:
    """Drives the assistant from the terminal."""

    SCENARIOS: dict[str, list[str]] = {
        "customer": [
            "Bonjour",
            "Je veux créer un client nommé Dupont avec email dupont@example.com",
            "Je veux créer un client nommé Martin avec email martin@invalide",
            "Donne-moi la liste des clients",
        ],
        "menu": [
            "/start",
            "#create_customer",
            "#reports_menu",
            "#not_a_button",
        ],
        "offline": [
            "Montre-moi mes devis",
            "Le rapport des ventes",
            "Quelle heure est-il ?",
            "/inconnu",
        ],
    }

    def __init__(self) -> None:
        config = dataclasses.replace(settings, backend=BackendConfig(url=""))
        self.app: AppContext = build_context(ConsoleTransport(), nlu=KeywordNLU(), config=config)
        self._callback_ids = count(1)

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def _process_input(self, text: str) -> None:
        if text.startswith("#"):
            sm = await self.app.callback_handler.handle_callback(
                CHAT_ID, str(next(self._callback_ids)), text[1:]
            )
        else:
            sm = await self.app.message_handler.handle_message(CHAT_ID, text)
        self.system_log(f"State trace: {' -> '.join(sm.get_state_trace())}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  ERP ASSISTANT - {title}{RESET}")
        print(f"{BOLD}  ERPNext: not configured (local customer store){RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        asyncio.run(self._play(scenario, steps))

    async def _play(self, scenario: str, steps: list[str]) -> None:
        self._banner(f"Scenario: {scenario}")
        try:
            for step in steps:
                print(f"\n{BLUE}[User] {RESET}{step}")
                await self._process_input(step)
        finally:
            await self.app.aclose()
        print(f"\n{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Local customers: {len(self.app.store.list())}{RESET}")

    def run(self) -> None:
        asyncio.run(self._interactive())

    async def _interactive(self) -> None:
        self._banner("Console Demo")
        print(f"{BOLD}  Type 'quit' to exit, '#<id>' to press a button{RESET}")
        try:
            while True:
                user_input = (await asyncio.to_thread(input, f"\n{BLUE}[User] {RESET}")).strip()
                if not user_input:
                    continue
                if user_input.lower() in ("quit", "exit", "q"):
                    print(f"\n{DIM}Session ended.{RESET}")
                    return
                await self._process_input(user_input)
        finally:
            await self.app.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline ERP assistant demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
