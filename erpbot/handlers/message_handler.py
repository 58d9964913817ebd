"""
Inbound free-text pipeline.

    guardrails -> command? -> NLU -> parse -> classify confidence
               -> {clarify | route -> dispatch} -> reply

Each message is tracked by its own EventStateMachine. Whatever happens
inside the pipeline, the user gets exactly one error reply on failure:
the outermost ``except`` logs the traceback and answers with the generic
message.
"""

from typing import Awaitable, Callable, Optional

from erpbot.conversation.guardrails import GuardrailPipeline, GuardrailResult
from erpbot.conversation.state_machine import EventStateMachine, EventTrigger
from erpbot.formatting.response_builder import (
    MESSAGE_ERROR,
    UNKNOWN_COMMAND,
    build_error_response,
    build_rate_limited_response,
    build_reports_menu_response,
    build_welcome_response,
)
from erpbot.handlers.base import EventContext
from erpbot.handlers.dispatcher import ActionDispatcher
from erpbot.logging_context import get_session_logger, set_session_id
from erpbot.nlu.confidence import classify_confidence
from erpbot.nlu.parser import parse_entities, parse_intent
from erpbot.routing.router import Action, IntentRouter, RouteDecision
from erpbot.schemas.reply_schema import Reply
from erpbot.schemas.report_schema import ReportQuery
from erpbot.services.nlu_client import NLUError, RasaClient
from erpbot.transport import ChatId, ChatTransport

logger = get_session_logger(__name__)

QUOTATION_PROMPT_HEADER = "📝 Création de devis"

CommandHandler = Callable[[EventContext, list[str]], Awaitable[None]]


class MessageHandler:
    """Handles one inbound text message end to end."""

    def __init__(
        self,
        transport: ChatTransport,
        nlu: RasaClient,
        dispatcher: ActionDispatcher,
        guardrails: GuardrailPipeline,
        router: Optional[IntentRouter] = None,
    ) -> None:
        self.transport = transport
        self.nlu = nlu
        self.dispatcher = dispatcher
        self.guardrails = guardrails
        self.router = router or IntentRouter()
        self.commands: dict[str, CommandHandler] = {
            "/start": self._cmd_start,
            "/help": self._cmd_action(Action.HELP),
            "/customers": self._cmd_action(Action.LIST_CUSTOMERS),
            "/clients": self._cmd_action(Action.LIST_CUSTOMERS),
            "/reports": self._cmd_reports,
            "/rapport": self._cmd_report,
            "/devis": self._cmd_quotation,
            "/renvoyer": self._cmd_resend,
        }

    async def handle_message(
        self, chat_id: ChatId, text: Optional[str], reply_to_text: Optional[str] = None
    ) -> EventStateMachine:
        """
        Process one message and reply.

        ``reply_to_text`` is the text of the bot message the user answered,
        if any; answers to the quotation prompt skip NLU and go straight to
        quotation creation.
        """
        session_id = str(chat_id)
        set_session_id(session_id)
        sm = EventStateMachine()
        ctx = EventContext(chat_id=chat_id, transport=self.transport, text=text or "")

        try:
            failures = self.guardrails.check_inbound(session_id, text)
            if failures:
                await self._reject(ctx, sm, failures[0])
                return sm

            text = ctx.text.strip()
            if text.startswith("/"):
                sm.transition(EventTrigger.CALLBACK_ROUTED)
                await self._handle_command(ctx, text)
            elif reply_to_text and reply_to_text.startswith(QUOTATION_PROMPT_HEADER):
                sm.transition(EventTrigger.CALLBACK_ROUTED)
                ctx.decision = RouteDecision(Action.CREATE_QUOTATION)
                await self.dispatcher.dispatch(ctx)
            else:
                if not await self._classify_and_route(ctx, sm):
                    return sm
                await self.dispatcher.dispatch(ctx)

            sm.transition(EventTrigger.FALLBACK_USED if ctx.fallback_used else EventTrigger.REPLY_SENT)
        except Exception:
            logger.exception("Error handling message")
            sm.fail()
            await self._send_error(ctx, MESSAGE_ERROR)
        finally:
            logger.debug("Message trace: %s", " -> ".join(sm.get_state_trace()))
        return sm

    async def _classify_and_route(self, ctx: EventContext, sm: EventStateMachine) -> bool:
        """Run NLU and routing. Returns False when the event ended in CLARIFY."""
        try:
            raw = await self.nlu.parse_message(ctx.text, ctx.session_id)
        except NLUError as exc:
            logger.error("NLU unavailable: %s", exc)
            raw = None
        sm.transition(EventTrigger.NLU_PARSED)

        intent = parse_intent(raw) if raw is not None else None
        entities = parse_entities(raw) if raw is not None else []
        band = classify_confidence(intent)
        sm.transition(EventTrigger.CONFIDENCE_CLASSIFIED)

        if raw is None:
            ctx.fallback_used = True
            ctx.decision = RouteDecision(Action.FALLBACK)
        else:
            ctx.decision = self.router.route(intent, entities, band)

        if ctx.decision.action == Action.CLARIFY:
            sm.transition(EventTrigger.LOW_CONFIDENCE)
            await self.dispatcher.dispatch(ctx)
            return False

        logger.info(
            "Intent %s (%.2f, %s) -> %s",
            intent.name if intent else None,
            intent.confidence if intent else 0.0,
            band.value,
            ctx.decision.action.value,
        )
        sm.transition(EventTrigger.ROUTED)
        return True

    async def _reject(self, ctx: EventContext, sm: EventStateMachine, failure: GuardrailResult) -> None:
        if failure.severity == "ignore":
            logger.debug("Ignoring %s", failure.violation_type)
            return
        sm.fail()
        message = failure.message or ""
        if failure.violation_type == "rate_limited":
            await ctx.reply(build_rate_limited_response(message))
        else:
            await ctx.reply(build_error_response(message))

    async def _send_error(self, ctx: EventContext, message: str) -> None:
        try:
            await ctx.reply(build_error_response(message))
        except Exception:
            logger.exception("Could not deliver error reply")

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def _handle_command(self, ctx: EventContext, text: str) -> None:
        name, *args = text.split()
        # "/help@MyBot" addresses the bot explicitly in group chats
        handler = self.commands.get(name.split("@")[0].lower())
        if handler is None:
            logger.info("Unknown command %s", name)
            await ctx.reply(Reply(text=UNKNOWN_COMMAND, parse_mode=None))
            return
        await handler(ctx, args)

    def _cmd_action(self, action: Action) -> CommandHandler:
        async def run(ctx: EventContext, args: list[str]) -> None:
            ctx.decision = RouteDecision(action)
            await self.dispatcher.dispatch(ctx)

        return run

    async def _cmd_start(self, ctx: EventContext, args: list[str]) -> None:
        await ctx.reply(build_welcome_response())

    async def _cmd_reports(self, ctx: EventContext, args: list[str]) -> None:
        await ctx.reply(build_reports_menu_response())

    async def _cmd_report(self, ctx: EventContext, args: list[str]) -> None:
        if not args:
            await ctx.reply(build_error_response("Usage: /rapport <nom du rapport>"))
            return
        await self.dispatcher.reports.generate(ctx, ReportQuery(report_type=" ".join(args)))

    async def _cmd_quotation(self, ctx: EventContext, args: list[str]) -> None:
        if not args:
            await ctx.reply(build_error_response("Usage: /devis <numéro du devis>"))
            return
        await self.dispatcher.quotations.details(ctx, args[0])

    async def _cmd_resend(self, ctx: EventContext, args: list[str]) -> None:
        if not args:
            await ctx.reply(build_error_response("Usage: /renvoyer <numéro du devis> [email]"))
            return
        await self.dispatcher.quotations.resend(ctx, args[0], args[1] if len(args) > 1 else None)
