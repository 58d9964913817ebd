"""Inline keyboard button presses."""

from typing import Optional

from erpbot.conversation.state_machine import EventStateMachine, EventTrigger
from erpbot.formatting.response_builder import REQUEST_ERROR, build_error_response
from erpbot.handlers.base import EventContext
from erpbot.handlers.dispatcher import ActionDispatcher
from erpbot.logging_context import get_session_logger, set_session_id
from erpbot.routing.router import IntentRouter
from erpbot.transport import ChatId, ChatTransport

logger = get_session_logger(__name__)


class CallbackHandler:
    """Acknowledges a button press, then routes its callback id through the callback table."""

    def __init__(
        self,
        transport: ChatTransport,
        dispatcher: ActionDispatcher,
        router: Optional[IntentRouter] = None,
    ) -> None:
        self.transport = transport
        self.dispatcher = dispatcher
        self.router = router or IntentRouter()

    async def handle_callback(
        self, chat_id: ChatId, callback_id: str, data: Optional[str]
    ) -> EventStateMachine:
        set_session_id(str(chat_id))
        sm = EventStateMachine()
        ctx = EventContext(chat_id=chat_id, transport=self.transport)

        try:
            # Clears the client's loading indicator before any slow backend work
            await self.transport.answer_callback(callback_id)
            ctx.decision = self.router.route_callback(data)
            sm.transition(EventTrigger.CALLBACK_ROUTED)
            await self.dispatcher.dispatch(ctx)
            sm.transition(EventTrigger.FALLBACK_USED if ctx.fallback_used else EventTrigger.REPLY_SENT)
        except Exception:
            logger.exception("Error handling callback %s", data)
            sm.fail()
            try:
                await ctx.reply(build_error_response(REQUEST_ERROR))
            except Exception:
                logger.exception("Could not deliver error reply")
        return sm
