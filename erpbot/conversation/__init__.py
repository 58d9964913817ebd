from erpbot.conversation.guardrails import GuardrailPipeline, RateLimiter
from erpbot.conversation.state_machine import (
    EventState,
    EventStateMachine,
    EventTrigger,
)
from erpbot.conversation.validators import (
    ValidationResult,
    validate_customer_creation,
    validate_quotation,
)

__all__ = [
    "EventStateMachine",
    "EventState",
    "EventTrigger",
    "GuardrailPipeline",
    "RateLimiter",
    "ValidationResult",
    "validate_customer_creation",
    "validate_quotation",
]
