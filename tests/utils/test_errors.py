# -*- coding: utf-8 -*-
"""Tests for the Formular exception hierarchy."""

from datetime import timedelta

from discord.app_commands import CheckFailure
from utils.errors import (
    CooldownActiveError,
    DispatchError,
    FormCorruptedError,
    FormularCapacityError,
    FormularException,
    FormularInfraException,
    FormularMismatchError,
    FormularNotFoundError,
    FormularPermissionError,
    FormularUserException,
    FormularValidationError,
    PartialFailureError,
    SilentCheckFailure,
    StoreUnavailableError,
)


def test_user_exception_is_formular_exception():
    assert issubclass(FormularUserException, FormularException)


def test_user_errors_are_user_exceptions():
    for cls in (
        FormularNotFoundError,
        FormularValidationError,
        FormularCapacityError,
        FormularMismatchError,
        FormularPermissionError,
        CooldownActiveError,
        PartialFailureError,
    ):
        assert issubclass(cls, FormularUserException), cls


def test_infra_errors_are_not_user_exceptions():
    for cls in (StoreUnavailableError, DispatchError, FormCorruptedError):
        assert issubclass(cls, FormularInfraException)
        assert not issubclass(cls, FormularUserException)


def test_validation_error_carries_details():
    err = FormularValidationError(
        "'Email' must be at most 100 characters.", label="Email", reason="max_length", limit=100
    )
    assert str(err) == "'Email' must be at most 100 characters."
    assert (err.label, err.reason, err.limit) == ("Email", "max_length", 100)


def test_cooldown_error_carries_remaining():
    err = CooldownActiveError("Please wait 3m12s before submitting again.", remaining=timedelta(seconds=192))
    assert err.remaining == timedelta(seconds=192)


def test_corrupted_error_carries_ids():
    err = FormCorruptedError("broken", form_id=1, guild_id=2)
    assert (err.form_id, err.guild_id) == (1, 2)


def test_silent_check_failure_unchanged():
    assert issubclass(SilentCheckFailure, CheckFailure)
