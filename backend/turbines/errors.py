from __future__ import annotations

from typing import Any


class QueryError(Exception):
    """
    Base class for classified query failures.

    Every failure that reaches a client boundary is one of these, so callers can
    map it to a stable `{"error": kind, "details": ...}` shape.
    """

    kind: str = "QueryError"
    status_code: int = 500

    def __init__(self, details: str | None = None):
        super().__init__(details or self.kind)
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.kind, "details": self.details}


class InvalidArgument(QueryError):
    """Malformed or out-of-range client input. Never retried automatically."""

    kind = "InvalidArgument"
    status_code = 400


class StoreUnavailable(QueryError):
    """The spatial store could not be reached or the query failed."""

    kind = "StoreUnavailable"
    status_code = 500


# Client-side name for the same condition: retry is user-triggered (next settle).
TransientFailure = StoreUnavailable


def error_from_payload(status_code: int, payload: Any) -> QueryError:
    details = None
    kind = None
    if isinstance(payload, dict):
        kind = payload.get("error")
        details = payload.get("details")
        if details is not None:
            details = str(details)
    if status_code == 400 or kind == InvalidArgument.kind:
        return InvalidArgument(details)
    return StoreUnavailable(details or f"HTTP {status_code}")
