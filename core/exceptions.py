from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


class WidgetError(Exception):
    """Base class for widget lifecycle failures."""


class ConfigurationError(WidgetError):
    """Raised at startup when a widget type or schema is misconfigured."""


@dataclass
class FieldError:
    field: str
    code: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


class ValidationError(WidgetError):
    """Raised when editor input cannot be converted into a clean record.

    Carries every field failure found during conversion, not just the first.
    """

    def __init__(self, errors: Iterable[FieldError]):
        self.errors = list(errors)
        super().__init__(self.summary())

    def summary(self) -> str:
        return "; ".join(f"{error.field}: {error.message}" for error in self.errors)


class LoadError(WidgetError):
    """Raised when relation resolution or nested area loading fails."""
