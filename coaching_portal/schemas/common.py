"""
Error envelope shared by every router's OpenAPI `responses` map.

All 4xx/5xx bodies are rendered by core.errors as {code, message, details};
validation failures put a list of {field, message, type}
under details.errors.
"""
from typing import Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


def error_response(description: str) -> dict[str, Any]:
    """`responses` entry documenting an error status with the standard envelope."""
    return {"model": ErrorResponse, "description": description}
