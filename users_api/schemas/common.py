# users_api/schemas/common.py
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Normalized error body returned for every failed request.

    Optional fields are omitted from the wire (never sent as ``null``).
    """

    status: Literal["error"] = "error"
    status_code: int = Field(alias="statusCode", description="HTTP status code")
    message: str = Field(description="Human readable message")
    error_code: str = Field(alias="errorCode", description="Machine readable code (E#####)")
    timestamp: str = Field(description="ISO8601 UTC timestamp")
    correlation_id: str | None = Field(default=None, alias="correlationId")
    errors: dict[str, list[str]] | None = Field(
        default=None, description="Validation messages per field"
    )
    data: dict[str, Any] | None = Field(
        default=None, description="Diagnostic details (non-production only)"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "status": "error",
                    "statusCode": 404,
                    "message": "User not found",
                    "errorCode": "E04001",
                    "timestamp": "2025-01-01T00:00:00.000Z",
                    "correlationId": "3f2b8c1e-0000-4000-8000-000000000000",
                }
            ]
        },
    )

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OkResponse(BaseModel):
    ok: bool = Field(description="Always true")

    model_config = {"json_schema_extra": {"examples": [{"ok": True}]}}
