from erpbot.formatting.report_formatter import format_row_report
from erpbot.formatting.response_builder import (
    build_clarify_response,
    build_fallback_response,
    build_validation_error_response,
    main_menu_keyboard,
)

__all__ = [
    "build_clarify_response",
    "build_fallback_response",
    "build_validation_error_response",
    "format_row_report",
    "main_menu_keyboard",
]
