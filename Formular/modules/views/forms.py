# -*- coding: utf-8 -*-
"""Open-form DynamicItem button, the form modal, and how their failures are shown to users."""

import logging
import re

import discord
from discord import Interaction, ui

from models.form import MAX_FIELDS, ButtonColor, FieldStyle, Form
from utils.dialog import DialogSpec
from utils.duration import format_duration
from utils.errors import (
    CooldownActiveError,
    FormCorruptedError,
    FormularCapacityError,
    FormularEmptyFormError,
    FormularException,
    FormularInfraException,
    FormularMismatchError,
    FormularUserException,
    FormularValidationError,
    PartialFailureError,
)
from utils.format import style_list
from utils.helpers import error_context, send_ephemeral
from utils.strings import get_string

log = logging.getLogger(__name__)

MODAL_TIMEOUT = 600
OPEN_PREFIX = "formular:open:"

_BUTTON_STYLES = {
    ButtonColor.PRIMARY: discord.ButtonStyle.primary,
    ButtonColor.SECONDARY: discord.ButtonStyle.secondary,
    ButtonColor.SUCCESS: discord.ButtonStyle.success,
    ButtonColor.DANGER: discord.ButtonStyle.danger,
}

_TEXT_STYLES = {
    FieldStyle.SHORT: discord.TextStyle.short,
    FieldStyle.PARAGRAPH: discord.TextStyle.paragraph,
}

_ANSWER_REASONS = ("required", "min_length", "max_length")


def _lang(interaction: Interaction) -> str:
    return getattr(interaction.client, "language", "en")


def render_error(lang: str, error: Exception) -> str:
    """Turn an exception into the message shown to the user."""
    if isinstance(error, CooldownActiveError):
        return get_string(lang, "forms.errors.cooldown", remaining=format_duration(error.remaining))
    if isinstance(error, FormularValidationError) and error.reason in _ANSWER_REASONS and error.label:
        return get_string(lang, f"forms.errors.{error.reason}", label=error.label, limit=error.limit)
    if isinstance(error, FormularCapacityError):
        return get_string(lang, "forms.errors.capacity", max=MAX_FIELDS)
    if isinstance(error, FormularMismatchError):
        return get_string(lang, "forms.errors.mismatch")
    if isinstance(error, FormularEmptyFormError):
        return get_string(lang, "forms.errors.empty")
    if isinstance(error, PartialFailureError):
        return get_string(lang, "forms.errors.partial_failure")
    if isinstance(error, FormCorruptedError):
        return get_string(lang, "forms.errors.corrupted")
    if isinstance(error, FormularUserException):
        return str(error)
    return get_string(lang, "forms.errors.generic")


async def report_error(interaction: Interaction, error: Exception) -> None:
    """Log ``error`` with its interaction context and answer the user ephemerally."""
    err_ctx = error_context(interaction)
    if isinstance(error, FormCorruptedError):
        log.error(f"{err_ctx}: form {error.form_id} in guild {error.guild_id} is corrupted: {error}")
    elif isinstance(error, FormularInfraException):
        log.error(f"{err_ctx}: {error.__class__.__name__}: {error}", exc_info=error)
    elif isinstance(error, FormularException):
        log.info(f"{err_ctx}: {error}")
    else:
        log.error(f"{err_ctx}: {error.__class__.__name__}: {error}", exc_info=error)

    try:
        await send_ephemeral(interaction, render_error(_lang(interaction), error))
    except discord.HTTPException:
        log.debug(f"{err_ctx}: could not report error, the interaction has expired")


def button_label(form: Form, lang: str = "en") -> str:
    return form.ButtonLabel or get_string(lang, "forms.button.default_label", form=form.Name)[:80]


class OpenFormButton(ui.DynamicItem[ui.Button], template=r"formular:open:(?P<form_id>\d+)"):
    """Persistent button that opens a form's modal. Survives restarts through its custom id."""

    def __init__(
        self,
        form_id: int,
        label: str | None = None,
        style: ButtonColor = ButtonColor.PRIMARY,
        emoji: str | discord.PartialEmoji | None = None,
    ):
        super().__init__(
            ui.Button(
                label=label or "Open form",
                style=_BUTTON_STYLES[ButtonColor(style)],
                emoji=emoji,
                custom_id=f"{OPEN_PREFIX}{form_id}",
            )
        )
        self.form_id = form_id

    @classmethod
    async def from_custom_id(cls, interaction: Interaction, item: ui.Button, match: re.Match):
        return cls(form_id=int(match["form_id"]), label=item.label)

    async def callback(self, interaction: Interaction):
        if interaction.guild_id is None:
            return
        try:
            dialog = await interaction.client.pipeline.open_form(
                interaction.guild_id, self.form_id, interaction.user.id
            )
        except FormularException as ex:
            await report_error(interaction, ex)
            return
        await interaction.response.send_modal(FormModal(dialog))


def build_button_view(form: Form, label: str | None = None, style: ButtonColor | None = None, emoji=None) -> ui.View:
    view = ui.View(timeout=None)
    view.add_item(
        OpenFormButton(form.Id, label=label or button_label(form), style=style or form.ButtonStyle, emoji=emoji)
    )
    return view


class FormModal(ui.Modal):
    """Modal rendering of a ``DialogSpec``.

    ``enforce_cooldown`` is turned off for administrator previews created with ``/forms show``.
    """

    def __init__(self, dialog: DialogSpec, *, enforce_cooldown: bool = True, post: bool = True):
        super().__init__(title=dialog.title[:45], timeout=MODAL_TIMEOUT, custom_id=dialog.custom_id)
        self.dialog = dialog
        self.enforce_cooldown = enforce_cooldown
        self.post = post
        self.inputs: list[ui.TextInput] = []
        for spec in dialog.inputs:
            text_input = ui.TextInput(
                label=spec.label,
                custom_id=spec.custom_id,
                style=_TEXT_STYLES[spec.style],
                required=spec.required,
                min_length=spec.min_length or None,
                max_length=spec.max_length,
                placeholder=spec.placeholder,
            )
            self.inputs.append(text_input)
            self.add_item(text_input)

    def raw_answers(self) -> list[str]:
        return [text_input.value for text_input in self.inputs]

    async def on_submit(self, interaction: Interaction):
        lang = _lang(interaction)
        if not self.post:
            await send_ephemeral(interaction, get_string(lang, "forms.show.preview_done"))
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            result = await interaction.client.pipeline.submit(
                interaction.guild_id,
                self.dialog.form_id,
                interaction.user,
                self.raw_answers(),
                self.dialog,
                enforce_cooldown=self.enforce_cooldown,
            )
        except FormularException as ex:
            await report_error(interaction, ex)
            return
        await interaction.followup.send(
            get_string(lang, "forms.submit.success", thread=result.thread.mention), ephemeral=True
        )

    async def on_error(self, interaction: Interaction, error: Exception, item=None) -> None:
        await report_error(interaction, error)


def _field_details(field, lang: str) -> str:
    _s = lambda key: get_string(lang, f"forms.details.{key}")  # noqa: E731
    return style_list(
        [
            (_s("style"), _s(f"style_{FieldStyle(field.Style).value}")),
            (_s("placeholder"), field.Placeholder),
            (_s("min_length"), field.MinLength),
            (_s("max_length"), field.MaxLength),
            (_s("required"), _s("yes") if field.Required else _s("no")),
            (_s("inline"), _s("yes") if field.Inline else _s("no")),
        ]
    )


def build_details_embed(form: Form, lang: str = "en") -> discord.Embed:
    """Overview of a form's settings and fields for administrators."""
    _s = lambda key: get_string(lang, f"forms.details.{key}")  # noqa: E731
    embed = discord.Embed(
        title=form.Name,
        colour=discord.Colour.blurple(),
        description=style_list(
            [
                (_s("destination"), f"<#{form.DestinationChannelId}>"),
                (_s("description"), (form.Description or "")[:1000]),
                (_s("mentions"), form.mention),
                (_s("cooldown"), format_duration(form.cooldown) if form.CooldownSeconds else None),
                (_s("thread_name"), form.ThreadNameTemplate),
                (_s("button"), button_label(form, lang)),
            ]
        ),
    )
    for field in form.fields:
        embed.add_field(name=f"{field.Position + 1}. {field.Label}", value=_field_details(field, lang), inline=True)
    if not form.fields:
        embed.set_footer(text=_s("no_fields"))
    return embed
