"""Result / Error kernel.

Every core operation returns ``Ok(value)`` or ``Err(error)`` — never raises
for expected failures. ``Error.code`` is drawn from the closed ``ErrorCode`` set.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_RATE_LIMIT = "PROVIDER_RATE_LIMIT"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    BAD_EXCHANGE_CODE = "BAD_EXCHANGE_CODE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class Error:
    code: ErrorCode
    message: str
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        # Coerce raw strings; unknown codes raise ValueError
        object.__setattr__(self, "code", ErrorCode(self.code))

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    @property
    def is_daily_limit(self) -> bool:
        return self.code == ErrorCode.PROVIDER_RATE_LIMIT and bool(self.details.get("daily_limit"))

    @classmethod
    def not_found(cls, entity: str, identifier: str) -> Error:
        return cls(ErrorCode.NOT_FOUND, f"{entity} with identifier '{identifier}' was not found.")

    @classmethod
    def validation(cls, message: str) -> Error:
        return cls(ErrorCode.VALIDATION_ERROR, message)

    @classmethod
    def provider_unavailable(cls, message: str) -> Error:
        return cls(ErrorCode.PROVIDER_UNAVAILABLE, message)

    @classmethod
    def provider_rate_limit(cls, message: str, daily_limit: bool = False) -> Error:
        details = {"daily_limit": True} if daily_limit else {}
        return cls(ErrorCode.PROVIDER_RATE_LIMIT, message, details)

    @classmethod
    def cache_write_failed(cls, message: str) -> Error:
        return cls(ErrorCode.CACHE_WRITE_FAILED, message)

    @classmethod
    def bad_exchange_code(cls, code: str) -> Error:
        return cls(ErrorCode.BAD_EXCHANGE_CODE, f"Exchange code '{code}' is not valid or not found.")

    @classmethod
    def internal(cls, message: str) -> Error:
        return cls(ErrorCode.INTERNAL_ERROR, message)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: Error

    def __post_init__(self):
        if not isinstance(self.error, Error):
            raise TypeError(f"Err requires an Error, got {type(self.error).__name__}")

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise ValueError(f"Cannot access value of a failed result ({self.error})")


Result = Union[Ok[T], Err]
