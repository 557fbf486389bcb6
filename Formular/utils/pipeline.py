# -*- coding: utf-8 -*-
"""Form submission pipeline.

Opening a form:   load form -> cooldown peek -> build dialog.
Submitting it:    reload form -> parse and validate answers -> reserve cooldown -> dispatch thread.

The cooldown is reserved atomically right before dispatch, so duplicate clicks dispatch at most once. If the
dispatch fails the reservation is released again: the user is not charged a cooldown for a submission that
never arrived and can retry the same answers. Every step raises a ``FormularException`` subclass; the
interaction layer turns those into messages.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from models.form import Form
from utils.cooldown import CooldownEnforcer, CooldownStatus
from utils.dialog import DialogSpec, Submission, build_dialog, parse_answers
from utils.dispatch import ThreadDispatcher, ThreadRef
from utils.duration import format_duration
from utils.errors import (
    CooldownActiveError,
    DispatchError,
    FormCorruptedError,
    FormularNotFoundError,
    PartialFailureError,
    StoreUnavailableError,
)
from utils.store import utcnow


@dataclass(frozen=True)
class SubmissionResult:
    submission: Submission
    thread: ThreadRef


def _cooldown_error(status: CooldownStatus) -> CooldownActiveError:
    return CooldownActiveError(
        f"Please wait {format_duration(status.remaining)} before submitting again.", remaining=status.remaining
    )


class SubmissionPipeline:
    def __init__(
        self,
        bot,
        enforcer: CooldownEnforcer,
        dispatcher: ThreadDispatcher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.bot = bot
        self.enforcer = enforcer
        self.dispatcher = dispatcher
        self._clock = clock

    def load_form(self, guild_id: int, form_id: int) -> Form:
        """Fetch a form and verify its stored shape. A deleted form is reported as not found."""
        try:
            with self.bot.session_scope() as session:
                form = Form.get_by_id(form_id, guild_id, session)
                if form is None:
                    raise FormularNotFoundError("This form no longer exists.")
                form.check_integrity()
                return form
        except LookupError as ex:
            # SQLAlchemy raises LookupError for enum values it does not know
            raise FormCorruptedError(
                f"Form {form_id} in guild {guild_id} holds an unknown enum value: {ex}",
                form_id=form_id,
                guild_id=guild_id,
            ) from ex

    async def open_form(self, guild_id: int, form_id: int, user_id: int) -> DialogSpec:
        form = self.load_form(guild_id, form_id)
        status = await self.enforcer.peek(guild_id, form.Id, user_id, form.cooldown)
        if not status.allowed:
            raise _cooldown_error(status)
        return build_dialog(form)

    async def preview(self, guild_id: int, form_id: int) -> DialogSpec:
        """Build the dialog without any cooldown check, for administrators trying a form out."""
        return build_dialog(self.load_form(guild_id, form_id))

    async def _release(self, form: Form, user_id: int) -> None:
        try:
            await self.enforcer.release(form.GuildId, form.Id, user_id, form.cooldown)
        except StoreUnavailableError:
            self.bot.log.error(
                f"forms: could not release cooldown of user {user_id} for form {form.Id} in guild {form.GuildId}",
                exc_info=True,
            )

    async def submit(
        self,
        guild_id: int,
        form_id: int,
        member,
        raw_answers: list[str | None],
        dialog: DialogSpec | None = None,
        *,
        enforce_cooldown: bool = True,
    ) -> SubmissionResult:
        form = self.load_form(guild_id, form_id)
        submission = parse_answers(form, raw_answers, user_id=member.id, dialog=dialog, submitted_at=self._clock())

        if enforce_cooldown:
            status = await self.enforcer.check_and_reserve(guild_id, form.Id, member.id, form.cooldown)
            if not status.allowed:
                raise _cooldown_error(status)

        try:
            thread = await self.dispatcher.dispatch(form, submission, member)
        except DispatchError as ex:
            self.bot.log.warning(f"forms: dispatch failed for form {form.Id} in guild {guild_id}: {ex}")
            if enforce_cooldown:
                await self._release(form, member.id)
            raise PartialFailureError(
                "Your answers could not be delivered. Nothing was recorded, please try again."
            ) from ex
        except Exception:
            if enforce_cooldown:
                await self._release(form, member.id)
            raise

        self.bot.log.info(f"forms: user {member.id} submitted form {form.Id} in guild {guild_id} -> {thread.thread_id}")
        return SubmissionResult(submission=submission, thread=thread)
