"""
Common schema types shared by the wire models.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """Dump as the backend expects it (camelCase, no unset optionals)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ApiEnvelope(CamelModel):
    """
    Standard response envelope.

    success=False is treated exactly like a non-2xx HTTP status.
    """

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None
    status_code: Optional[int] = None
    timestamp: Optional[str] = None

    @field_validator("error", "code", "timestamp", mode="before")
    @classmethod
    def _scalar_to_str(cls, value):
        # Backends send numeric error codes and epoch timestamps
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_body(cls, body: Any) -> "ApiEnvelope":
        """Wrap a parsed JSON body; bare (non-envelope) bodies count as success."""
        if isinstance(body, dict) and isinstance(body.get("success"), bool):
            return cls.model_validate(body)
        return cls(success=True, data=body)
