from erpbot.routing.router import (
    Action,
    IntentRouter,
    ReportType,
    RouteDecision,
)

__all__ = ["Action", "IntentRouter", "ReportType", "RouteDecision"]
