"""Per-event context passed to every action handler."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from erpbot.routing.router import Action, RouteDecision
from erpbot.schemas.nlu_schema import Entity
from erpbot.schemas.reply_schema import Reply
from erpbot.transport import ChatId, ChatTransport


@dataclass
class EventContext:
    """
    One inbound message or callback being handled.

    Handlers reply through ``reply``/``replace`` and set ``fallback_used``
    when they had to answer with the fallback reply instead of a
    backend answer, which ends the event in BACKEND_FALLBACK instead of
    HANDLED.
    """
    chat_id: ChatId
    transport: ChatTransport
    text: str = ""
    decision: RouteDecision = field(default_factory=lambda: RouteDecision(Action.FALLBACK))
    fallback_used: bool = False

    @property
    def session_id(self) -> str:
        return str(self.chat_id)

    @property
    def entities(self) -> list[Entity]:
        return self.decision.entities

    async def reply(self, reply: Reply) -> Optional[int]:
        return await self.transport.send_message(self.chat_id, reply)

    async def replace(self, message_id: Optional[int], reply: Reply) -> None:
        """Edit a previously sent message, or send a new one when there is none."""
        if message_id is None:
            await self.reply(reply)
        else:
            await self.transport.edit_message(self.chat_id, message_id, reply)

    async def discard(self, message_id: Optional[int]) -> None:
        if message_id is not None:
            await self.transport.delete_message(self.chat_id, message_id)


ActionHandler = Callable[[EventContext], Awaitable[None]]
