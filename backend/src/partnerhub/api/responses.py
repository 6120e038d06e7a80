"""Response envelope shared by every endpoint."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from partnerhub.errors import DEFAULT_MESSAGES, ErrorCode

T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    """{code, message, data} envelope. Code 0 means success."""
    code: int = ErrorCode.SUCCESS.value
    message: str = DEFAULT_MESSAGES[ErrorCode.SUCCESS]
    data: T | None = None


def success(data: Any = None) -> dict[str, Any]:
    """Wrap a successful result."""
    return {
        "code": ErrorCode.SUCCESS.value,
        "message": DEFAULT_MESSAGES[ErrorCode.SUCCESS],
        "data": data,
    }
