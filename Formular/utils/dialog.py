# -*- coding: utf-8 -*-
"""Turns a form into the dialog Discord can show, and the dialog's raw answers back into a submission.

Nothing in here talks to Discord; ``modules.views.forms.FormModal`` renders a ``DialogSpec`` and hands
the raw answer strings back to ``parse_answers``.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime

from models.form import MAX_FIELDS, FieldStyle, Form
from utils.errors import FormularEmptyFormError, FormularMismatchError, FormularValidationError
from utils.store import utcnow

DIALOG_PREFIX = "formular:submit:"


@dataclass(frozen=True)
class InputSpec:
    """One text input of a dialog, tagged with the position of the field it answers."""

    position: int
    label: str
    style: FieldStyle
    required: bool
    min_length: int
    max_length: int
    placeholder: str | None = None

    @property
    def custom_id(self) -> str:
        return str(self.position)


@dataclass(frozen=True)
class DialogSpec:
    form_id: int
    title: str
    inputs: tuple[InputSpec, ...]
    signature: str

    @property
    def field_count(self) -> int:
        return len(self.inputs)

    @property
    def custom_id(self) -> str:
        return f"{DIALOG_PREFIX}{self.form_id}:{self.field_count}:{self.signature}"


@dataclass(frozen=True)
class Answer:
    position: int
    label: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class Submission:
    """A validated set of answers, one per field of the form, in position order."""

    form_id: int
    guild_id: int
    user_id: int
    submitted_at: datetime
    answers: tuple[Answer, ...]

    def pairs(self) -> list[tuple[int, str]]:
        return [(answer.position, answer.value) for answer in self.answers]


def form_signature(form: Form) -> str:
    """Short fingerprint of the form's field labels, so a dialog can tell if the form changed under it."""
    digest = hashlib.sha1("\x1f".join(field.Label for field in form.fields).encode("utf-8"))
    return digest.hexdigest()[:10]


def build_dialog(form: Form) -> DialogSpec:
    if not form.fields:
        raise FormularEmptyFormError(f"Form '{form.Name}' has no fields yet.")

    inputs = tuple(
        InputSpec(
            position=field.Position,
            label=field.Label,
            style=FieldStyle(field.Style),
            required=bool(field.Required),
            min_length=field.min_length,
            max_length=field.max_length,
            placeholder=field.Placeholder,
        )
        for field in form.fields[:MAX_FIELDS]
    )
    return DialogSpec(form_id=form.Id, title=form.Name, inputs=inputs, signature=form_signature(form))


def _check_answer(field, value: str) -> None:
    if not value.strip():
        if field.Required:
            raise FormularValidationError(f"'{field.Label}' is required.", label=field.Label, reason="required")
        return

    if len(value) < field.min_length:
        raise FormularValidationError(
            f"'{field.Label}' must be at least {field.min_length} characters.",
            label=field.Label,
            reason="min_length",
            limit=field.min_length,
        )
    if len(value) > field.max_length:
        raise FormularValidationError(
            f"'{field.Label}' must be at most {field.max_length} characters.",
            label=field.Label,
            reason="max_length",
            limit=field.max_length,
        )


def parse_answers(
    form: Form,
    raw_answers: list[str | None],
    *,
    user_id: int,
    dialog: DialogSpec | None = None,
    submitted_at: datetime | None = None,
) -> Submission:
    """Match raw answers to the form's current fields and validate each one.

    ``raw_answers`` must be in position order, one per field. When ``dialog`` is given, it is the dialog the
    user actually answered; if the form gained, lost or relabeled fields since it was built, the answers
    are rejected rather than attached to the wrong fields.
    """
    field_count = len(form.fields)
    if len(raw_answers) != field_count:
        raise FormularMismatchError(
            f"Got {len(raw_answers)} answers, but form '{form.Name}' now has {field_count} fields."
        )
    if dialog is not None and (dialog.field_count != field_count or dialog.signature != form_signature(form)):
        raise FormularMismatchError(f"Form '{form.Name}' was changed while it was being filled in.")

    answers = []
    for field, raw in zip(form.fields, raw_answers):
        value = raw or ""
        _check_answer(field, value)
        answers.append(Answer(position=field.Position, label=field.Label, value=value, inline=bool(field.Inline)))

    return Submission(
        form_id=form.Id,
        guild_id=form.GuildId,
        user_id=user_id,
        submitted_at=submitted_at or utcnow(),
        answers=tuple(answers),
    )
