"""Domain errors raised by services and rendered by ``api.errors``."""

from __future__ import annotations

from collections.abc import Iterable, Mapping


class TaskhubError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TaskhubError):
    """Malformed or missing input; carries a field -> messages mapping."""

    status_code = 422
    default_message = "The given data was invalid."

    def __init__(self, errors: Mapping[str, str | Iterable[str]], message: str | None = None):
        super().__init__(message)
        self.errors: dict[str, list[str]] = {
            field: [msgs] if isinstance(msgs, str) else list(msgs)
            for field, msgs in errors.items()
        }

    @classmethod
    def single(cls, field: str, msg: str) -> "ValidationError":
        return cls({field: [msg]})


class AuthenticationError(TaskhubError):
    status_code = 401
    default_message = "Unauthenticated."


class AuthorizationError(TaskhubError):
    status_code = 403
    default_message = "Unauthorized"


class NotFoundError(TaskhubError):
    status_code = 404
    default_message = "Not found"


def errors_from_pydantic(errors: Iterable[Mapping]) -> dict[str, list[str]]:
    """Group pydantic error dicts by the last named element of their location."""
    grouped: dict[str, list[str]] = {}
    for err in errors:
        loc = [part for part in err.get("loc", ()) if isinstance(part, str)]
        field = loc[-1] if loc else "__root__"
        grouped.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return grouped
