"""Report request model."""

from typing import Any, Union

from pydantic import BaseModel, Field

from erpbot.routing.router import ReportType


class ReportQuery(BaseModel):
    """A known report kind, or any other string naming an ERPNext query report."""
    report_type: Union[ReportType, str] = Field(union_mode="left_to_right")
    filters: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_custom(self) -> bool:
        return not isinstance(self.report_type, ReportType)

    @property
    def label(self) -> str:
        if isinstance(self.report_type, ReportType):
            return self.report_type.value
        return self.report_type
