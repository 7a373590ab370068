"""Structured API errors.

Services raise these instead of bare ``HTTPException`` so the same failure can
surface through a REST route or inside a batch without losing its code. The
exception handlers in ``main.py`` render them into the error envelope::

    {"success": false, "error": {"code": ..., "message": ..., "suggestions": [...]}}
"""

from typing import Iterable, Optional


class ApiError(Exception):
    status_code = 422

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        suggestions: Optional[Iterable[str]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.suggestions = list(suggestions or [])

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.suggestions:
            error["suggestions"] = self.suggestions
        return error


class NotFoundError(ApiError):
    status_code = 404

    def __init__(self, resource: str, suggestions: Optional[Iterable[str]] = None):
        super().__init__("NOT_FOUND", f"{resource} not found", suggestions=suggestions)
        self.resource = resource


class InvalidTransitionError(ApiError):
    def __init__(self, current: str, target: str, allowed: Iterable[str]):
        allowed = list(allowed)
        super().__init__(
            "INVALID_TRANSITION",
            f"Cannot transition from '{current}' to '{target}'.",
            suggestions=[
                f"Current status: {current}",
                "Allowed transitions: " + (", ".join(allowed) if allowed else "none"),
            ],
        )
        self.current = current
        self.target = target


class BatchReferenceError(ApiError):
    def __init__(self, reference: str):
        super().__init__("UNRESOLVED_REFERENCE", f"Unresolved reference: {reference}")
        self.reference = reference
