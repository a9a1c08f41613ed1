"""
Pawmatch — Error taxonomy.

Every failure a service can report is one of these.  Services never let
them (or raw store errors) escape; they travel inside a
:class:`~app.services.results.ServiceResult` and the API layer turns them
into HTTP responses using ``status_code`` and ``user_message``.
"""

from __future__ import annotations

from typing import Any


class PawmatchError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    user_message: str = "Something went wrong."

    def __init__(self, detail: str | None = None, **context: Any) -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message
        self.context = context


class NoOwnedPetError(PawmatchError):
    """The acting user has no pet to swipe through."""

    status_code = 409
    user_message = "You must add a pet before swiping."


class PersistenceError(PawmatchError):
    """Any failure from the underlying store or change feed."""

    status_code = 503
    user_message = "Something went wrong on our side, please try again."

    def __init__(self, detail: str | None = None, cause: BaseException | None = None, **context: Any) -> None:
        super().__init__(detail, **context)
        self.cause = cause


class NotFoundError(PawmatchError):
    status_code = 404
    user_message = "Nothing to show."


class InvalidInputError(PawmatchError):
    status_code = 422
    user_message = "The submitted data is invalid."


class MessageValidationError(InvalidInputError):
    user_message = "Message content cannot be empty."


class ConflictError(PawmatchError):
    status_code = 409
    user_message = "This record already exists."


class PermissionDeniedError(PawmatchError):
    status_code = 403
    user_message = "You are not allowed to do that."
