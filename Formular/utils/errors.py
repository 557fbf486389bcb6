# -*- coding: utf-8 -*-

from datetime import timedelta

from discord.app_commands import CheckFailure


class FormularException(Exception):
    """Base for all Formular exceptions. Raiseable as a fallback."""

    pass


class FormularUserException(FormularException):
    """User-facing error, shown to the Discord user as-is."""

    pass


class FormularNotFoundError(FormularUserException):
    """A requested entity (form, field) does not exist, or was deleted mid-flight."""

    pass


class FormularValidationError(FormularUserException):
    """Input violates a constraint.

    ``label`` names the offending field (when there is one), ``reason`` is a short constraint code
    (``required``, ``min_length``, ``max_length``, ...) and ``limit`` is the bound that was crossed.
    """

    def __init__(self, message: str, label: str | None = None, reason: str | None = None, limit: int | None = None):
        super().__init__(message)
        self.label = label
        self.reason = reason
        self.limit = limit


class FormularCapacityError(FormularUserException):
    """The form already holds the maximum number of fields."""

    pass


class FormularDuplicateLabelError(FormularUserException):
    """Another field of the form already uses this label."""

    pass


class FormularEmptyFormError(FormularUserException):
    """The form has no fields, so there is nothing to submit."""

    pass


class FormularMismatchError(FormularUserException):
    """The dialog the user answered no longer matches the form's current shape."""

    pass


class FormularPermissionError(FormularUserException):
    """The bot lacks a channel permission it needs for this form."""

    pass


class CooldownActiveError(FormularUserException):
    """The user submitted this form too recently."""

    def __init__(self, message: str, remaining: timedelta):
        super().__init__(message)
        self.remaining = remaining


class FormularInfraException(FormularException):
    """Infrastructure failure. Logged with context and answered with a generic message.

    Raise with ``from original_exc`` to keep the traceback chained.
    """

    pass


class StoreUnavailableError(FormularInfraException):
    """The key-value store timed out or could not be reached."""

    pass


class DispatchError(FormularInfraException):
    """Creating the submission thread or posting into it failed."""

    pass


class FormCorruptedError(FormularInfraException):
    """Persisted form data violates the model invariants."""

    def __init__(self, message: str, form_id: int | None = None, guild_id: int | None = None):
        super().__init__(message)
        self.form_id = form_id
        self.guild_id = guild_id


class PartialFailureError(FormularUserException):
    """The answers were valid but could not be delivered. Nothing was committed; retrying is safe."""

    pass


class SilentCheckFailure(CheckFailure):
    """A check already sent its own rejection message, so the error handler stays quiet."""

    pass
