# -*- coding: utf-8 -*-
"""Form management cog: form settings, field editing, cooldown resets and the store purge loop."""

from typing import Optional, Union

import discord
from discord import Embed, Interaction, Member, Role, TextChannel, app_commands
from discord.ext import tasks
from discord.ext.commands import GroupCog

from models.form import ButtonColor, FieldStyle, Form, FormField, MentionKind
from modules.views.forms import FormModal, build_button_view, build_details_embed
from utils.cog import FormularCog
from utils.duration import format_duration, parse_duration
from utils.errors import (
    FormularNotFoundError,
    FormularPermissionError,
    FormularValidationError,
    StoreUnavailableError,
)
from utils.helpers import send_ephemeral
from utils.strings import get_string

THREAD_PERMISSIONS = ("view_channel", "create_private_threads", "send_messages_in_threads")


def _filter_choices(items, current: str) -> list[app_commands.Choice[str]]:
    """Build autocomplete choices from items with a .Name attribute, filtering by current input."""
    choices = []
    for item in items:
        if current and current.lower() not in item.Name.lower():
            continue
        choices.append(app_commands.Choice(name=item.Name[:100], value=item.Name))
    return choices[:25]


def _parse_order(value: str) -> list[int]:
    """Parse ``"3, 1, 2"`` (1-based) into zero-based positions."""
    try:
        return [int(part) - 1 for part in value.replace(",", " ").split()]
    except ValueError as ex:
        raise FormularValidationError(f"'{value}' is not a list of field numbers.", reason="permutation") from ex


def resolve_field(form: Form, value: str) -> int:
    """Find a field by label (case-insensitive) or by its 1-based number. Returns the position."""
    field = form.find_field(value)
    if field is not None:
        return field.Position
    if value.strip().isdigit():
        position = int(value.strip()) - 1
        form.field_at(position)
        return position
    raise FormularNotFoundError(f"Form '{form.Name}' has no field '{value}'.")


def check_destination(channel: TextChannel, lang: str) -> None:
    """Raise ``FormularPermissionError`` unless the bot can open private threads in ``channel``."""
    permissions = channel.permissions_for(channel.guild.me)
    missing = [name for name in THREAD_PERMISSIONS if not getattr(permissions, name)]
    if missing:
        raise FormularPermissionError(
            get_string(lang, "forms.errors.missing_permissions", channel=channel.mention, permissions=", ".join(missing))
        )


def _duration(value: str, lang: str):
    try:
        return parse_duration(value)
    except ValueError as ex:
        raise FormularValidationError(get_string(lang, "forms.errors.duration", value=value), reason="duration") from ex


@app_commands.default_permissions(manage_channels=True)
@app_commands.guild_only()
class Forms(FormularCog, GroupCog, group_name="forms"):
    """Cog for defining forms and their fields."""

    fields_group = app_commands.Group(name="fields", description="Manage the fields of a form", guild_only=True)
    cooldowns_group = app_commands.Group(name="cooldowns", description="Manage submission cooldowns", guild_only=True)

    def __init__(self, bot):
        super().__init__(bot)
        interval = bot.config.get("store", {}).get("purge_interval_minutes", 60)
        self._purge_loop.change_interval(minutes=interval)
        self._purge_loop.start()

    def cog_unload(self):
        self._purge_loop.cancel()

    @tasks.loop(minutes=60)
    async def _purge_loop(self):
        self.bot.log.debug("forms: purging expired store entries")
        try:
            removed = await self.bot.store.purge_expired()
        except Exception as ex:
            self.bot.log.error(f"forms: purging expired store entries failed: {ex}")
            return
        if removed:
            self.bot.log.info(f"forms: purged {removed} expired store entries")

    @property
    def lang(self) -> str:
        return self.bot.language

    def _s(self, key: str, **kwargs) -> str:
        return get_string(self.lang, f"forms.{key}", **kwargs)

    def _get_form(self, name: str, guild_id: int, session) -> Form:
        form = Form.get(name, guild_id, session)
        if form is None:
            raise FormularNotFoundError(self._s("not_found", name=name))
        return form

    # -- Autocomplete helpers ------------------------------------------------

    async def _form_autocomplete(self, interaction: Interaction, current: str) -> list[app_commands.Choice[str]]:
        with self.bot.session_scope() as session:
            return _filter_choices(Form.get_all_by_guild(interaction.guild_id, session), current)

    async def _field_autocomplete(self, interaction: Interaction, current: str) -> list[app_commands.Choice[str]]:
        form_name = getattr(interaction.namespace, "form", None)
        if not form_name:
            return []
        with self.bot.session_scope() as session:
            form = Form.get(form_name, interaction.guild_id, session)
            if form is None:
                return []
            return [
                app_commands.Choice(name=f"{field.Position + 1}. {field.Label}"[:100], value=field.Label)
                for field in form.fields
                if not current or current.lower() in field.Label.lower()
            ][:25]

    # -- /forms create -------------------------------------------------------

    @app_commands.command(name="create")
    @app_commands.describe(
        name="Name of the form, also used as the dialog title",
        channel="Channel under which submission threads are created",
        description="Text posted above every submission",
        cooldown="Minimum time between two submissions of one user, e.g. 1h30m",
    )
    async def _create(
        self,
        interaction: Interaction,
        name: app_commands.Range[str, 1, 45],
        channel: TextChannel,
        description: Optional[str] = None,
        cooldown: Optional[str] = None,
    ):
        """Create a new, empty form."""
        check_destination(channel, self.lang)
        duration = _duration(cooldown, self.lang) if cooldown else None

        with self.bot.session_scope() as session:
            if Form.get(name, interaction.guild_id, session) is not None:
                raise FormularValidationError(self._s("create.exists", name=name), reason="duplicate")
            form = Form.create(interaction.guild_id, name, channel.id, description=description, cooldown=duration)
            session.add(form)

        self.bot.log.info(f"forms: created form '{form.Name}' in guild {interaction.guild_id}")
        await send_ephemeral(interaction, self._s("create.success", name=form.Name))

    # -- /forms delete -------------------------------------------------------

    @app_commands.command(name="delete")
    @app_commands.describe(form="The form to delete")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _delete(self, interaction: Interaction, form: str):
        """Delete a form and all of its fields."""
        with self.bot.session_scope() as session:
            form_id = Form.delete_by_name(form, interaction.guild_id, session)
            if form_id is None:
                raise FormularNotFoundError(self._s("not_found", name=form))

        self.bot.log.info(f"forms: deleted form '{form}' in guild {interaction.guild_id}")
        try:
            await self.bot.enforcer.clear_form(interaction.guild_id, form_id)
        except StoreUnavailableError as ex:
            # leftover records expire on their own
            self.bot.log.warning(f"forms: could not clear cooldowns of deleted form {form_id}: {ex}")
        await send_ephemeral(interaction, self._s("delete.success", name=form))

    # -- /forms list ---------------------------------------------------------

    @app_commands.command(name="list")
    async def _list(self, interaction: Interaction):
        """List all forms of this server."""
        with self.bot.session_scope() as session:
            forms = Form.get_all_by_guild(interaction.guild_id, session)
            lines = [
                self._s("list.entry", name=f.Name, fields=len(f.fields), channel=f"<#{f.DestinationChannelId}>")
                for f in forms
            ]

        if not lines:
            await send_ephemeral(interaction, self._s("list.empty"))
            return
        embed = Embed(title=self._s("list.title"), description="\n".join(lines), color=0x5865F2)
        await send_ephemeral(interaction, embed=embed)

    # -- /forms details ------------------------------------------------------

    @app_commands.command(name="details")
    @app_commands.describe(form="The form to show")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _details(self, interaction: Interaction, form: str):
        """Show the settings and fields of a form."""
        with self.bot.session_scope() as session:
            embed = build_details_embed(self._get_form(form, interaction.guild_id, session), self.lang)
        await send_ephemeral(interaction, embed=embed)

    # -- /forms rename -------------------------------------------------------

    @app_commands.command(name="rename")
    @app_commands.describe(form="The form to rename", name="New name of the form")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _rename(self, interaction: Interaction, form: str, name: app_commands.Range[str, 1, 45]):
        """Rename a form. The name is also the title of its dialog."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            other = Form.get(name, interaction.guild_id, session)
            if other is not None and other is not entity:
                raise FormularValidationError(self._s("create.exists", name=name), reason="duplicate")
            entity.set_name(name)
        await send_ephemeral(interaction, self._s("rename.success", old=form, name=name))

    # -- /forms description --------------------------------------------------

    @app_commands.command(name="description")
    @app_commands.describe(form="The form to update", text="New description, leave it out to remove it")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _description(self, interaction: Interaction, form: str, text: Optional[str] = None):
        """Set the text posted above every submission."""
        with self.bot.session_scope() as session:
            self._get_form(form, interaction.guild_id, session).set_description(text)
        await send_ephemeral(interaction, self._s("description.success", name=form))

    # -- /forms destination --------------------------------------------------

    @app_commands.command(name="destination")
    @app_commands.describe(form="The form to update", channel="Channel under which submission threads are created")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _destination(self, interaction: Interaction, form: str, channel: TextChannel):
        """Change where submissions of a form are posted."""
        check_destination(channel, self.lang)
        with self.bot.session_scope() as session:
            self._get_form(form, interaction.guild_id, session).DestinationChannelId = channel.id
        await send_ephemeral(interaction, self._s("destination.success", name=form, channel=channel.mention))

    # -- /forms threadname ---------------------------------------------------

    @app_commands.command(name="threadname")
    @app_commands.describe(
        form="The form to update", template="Thread name, {user} and {form} are filled in. Leave out to reset"
    )
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _threadname(self, interaction: Interaction, form: str, template: Optional[str] = None):
        """Set the name of submission threads."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            entity.set_thread_name(template)
            template = entity.ThreadNameTemplate
        await send_ephemeral(interaction, self._s("threadname.success", name=form, template=template))

    # -- /forms mention ------------------------------------------------------

    @app_commands.command(name="mention")
    @app_commands.describe(form="The form to update", target="Role or user to ping, leave it out to stop pinging")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _mention(self, interaction: Interaction, form: str, target: Optional[Union[Role, Member]] = None):
        """Ping a role or user whenever a form is submitted."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            if target is None:
                entity.set_mention(None, None)
            else:
                entity.set_mention(target.id, MentionKind.ROLE if isinstance(target, Role) else MentionKind.USER)

        if target is None:
            await send_ephemeral(interaction, self._s("mention.removed", name=form))
        else:
            await send_ephemeral(
                interaction,
                self._s("mention.success", name=form, target=target.mention),
                allowed_mentions=discord.AllowedMentions.none(),
            )

    # -- /forms cooldown -----------------------------------------------------

    @app_commands.command(name="cooldown")
    @app_commands.describe(form="The form to update", duration="e.g. 10m, 1h30m or 1d. 0 disables the cooldown")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _cooldown(self, interaction: Interaction, form: str, duration: str):
        """Set how long a user has to wait between two submissions."""
        cooldown = _duration(duration, self.lang)
        with self.bot.session_scope() as session:
            self._get_form(form, interaction.guild_id, session).set_cooldown(cooldown)

        if not cooldown:
            await send_ephemeral(interaction, self._s("cooldown.disabled", name=form))
        else:
            await send_ephemeral(interaction, self._s("cooldown.success", name=form, duration=format_duration(cooldown)))

    # -- /forms button -------------------------------------------------------

    @app_commands.command(name="button")
    @app_commands.describe(
        form="The form the button opens",
        text="Label of the button",
        color="Color of the button",
        message="Text posted with the button",
        emoji="Emoji shown on the button",
    )
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _button(
        self,
        interaction: Interaction,
        form: str,
        text: Optional[app_commands.Range[str, 1, 80]] = None,
        color: Optional[ButtonColor] = None,
        message: Optional[str] = None,
        emoji: Optional[str] = None,
    ):
        """Post a button in this channel that opens the form."""
        await interaction.response.defer(ephemeral=True)

        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            if text is not None or color is not None:
                entity.set_button(text if text is not None else entity.ButtonLabel, color)
            view = build_button_view(
                entity, style=entity.ButtonStyle, emoji=discord.PartialEmoji.from_str(emoji) if emoji else None
            )

        try:
            await interaction.channel.send(content=message, view=view)
        except discord.HTTPException as ex:
            self.bot.log.warning(f"forms: could not post button for '{form}' in {interaction.channel_id}: {ex}")
            await send_ephemeral(interaction, self._s("button.failed"))
            return
        await send_ephemeral(interaction, self._s("button.success"))

    # -- /forms show ---------------------------------------------------------

    @app_commands.command(name="show")
    @app_commands.describe(form="The form to try out", create="Post the answers like a real submission")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _show(self, interaction: Interaction, form: str, create: bool = False):
        """Open a form's dialog without cooldown, to try it out."""
        with self.bot.session_scope() as session:
            form_id = self._get_form(form, interaction.guild_id, session).Id
        dialog = await self.bot.pipeline.preview(interaction.guild_id, form_id)
        await interaction.response.send_modal(FormModal(dialog, enforce_cooldown=False, post=create))

    # -- /forms fields -------------------------------------------------------

    @fields_group.command(name="add")
    @app_commands.rename(min_length="min-length", max_length="max-length")
    @app_commands.describe(
        form="The form to extend",
        label="Label of the field",
        style="Single line or paragraph",
        placeholder="Hint shown in the empty input",
        min_length="Minimum answer length (always at least 1 if required)",
        max_length="Maximum answer length",
        required="Whether the field must be answered (defaults to true)",
        before="Insert in front of this field number instead of at the end",
        inline="Show the answer inline in the submission (defaults to false)",
    )
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _field_add(
        self,
        interaction: Interaction,
        form: str,
        label: app_commands.Range[str, 1, 45],
        style: FieldStyle = FieldStyle.SHORT,
        placeholder: Optional[app_commands.Range[str, 1, 100]] = None,
        min_length: Optional[app_commands.Range[int, 0, 1024]] = None,
        max_length: Optional[app_commands.Range[int, 1, 1024]] = None,
        required: bool = True,
        before: Optional[app_commands.Range[int, 1, 5]] = None,
        inline: bool = False,
    ):
        """Add a field to a form."""
        field = FormField.create(
            label,
            style,
            required=required,
            min_length=min_length,
            max_length=max_length,
            placeholder=placeholder,
            inline=inline,
        )
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            entity.add_field(field, before=before - 1 if before is not None else None)
            position = field.Position
        await send_ephemeral(interaction, self._s("fields.add.success", label=field.Label, position=position + 1))

    @fields_group.command(name="remove")
    @app_commands.describe(form="The form to update", field="The field to remove")
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_remove(self, interaction: Interaction, form: str, field: str):
        """Remove a field from a form."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            removed = entity.remove_field(resolve_field(entity, field))
        await send_ephemeral(interaction, self._s("fields.remove.success", label=removed.Label))

    @fields_group.command(name="move")
    @app_commands.describe(form="The form to update", field="The field to move", position="Its new field number")
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_move(
        self, interaction: Interaction, form: str, field: str, position: app_commands.Range[int, 1, 5]
    ):
        """Move a field to another position."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            current = resolve_field(entity, field)
            label = entity.fields[current].Label
            entity.move_field(current, position - 1)
        await send_ephemeral(interaction, self._s("fields.move.success", label=label, position=position))

    @fields_group.command(name="reorder")
    @app_commands.describe(form="The form to update", order="All field numbers in their new order, e.g. 3,1,2")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _field_reorder(self, interaction: Interaction, form: str, order: str):
        """Rearrange all fields of a form at once."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            entity.reorder_fields(_parse_order(order))
            labels = ", ".join(f.Label for f in entity.fields)
        await send_ephemeral(interaction, self._s("fields.reorder.success", labels=labels))

    @fields_group.command(name="rename")
    @app_commands.describe(form="The form to update", field="The field to rename", label="New label")
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_rename(
        self, interaction: Interaction, form: str, field: str, label: app_commands.Range[str, 1, 45]
    ):
        """Change the label of a field."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            renamed = entity.rename_field(resolve_field(entity, field), label)
            label = renamed.Label
        await send_ephemeral(interaction, self._s("fields.rename.success", old=field, label=label))

    @fields_group.command(name="style")
    @app_commands.describe(form="The form to update", field="The field to update", style="Single line or paragraph")
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_style(self, interaction: Interaction, form: str, field: str, style: FieldStyle):
        """Change the input style of a field."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            target = entity.fields[resolve_field(entity, field)]
            target.Style = FieldStyle(style)
            label = target.Label
        await send_ephemeral(interaction, self._s("fields.updated", label=label))

    @fields_group.command(name="placeholder")
    @app_commands.describe(form="The form to update", field="The field to update", text="Leave it out to remove")
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_placeholder(
        self,
        interaction: Interaction,
        form: str,
        field: str,
        text: Optional[app_commands.Range[str, 1, 100]] = None,
    ):
        """Set the hint shown in an empty field."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            target = entity.fields[resolve_field(entity, field)]
            target.set_placeholder(text)
            label = target.Label
        await send_ephemeral(interaction, self._s("fields.updated", label=label))

    @fields_group.command(name="validation")
    @app_commands.rename(min_length="min-length", max_length="max-length")
    @app_commands.describe(
        form="The form to update",
        field="The field to update",
        min_length="Minimum answer length, leave it out to remove",
        max_length="Maximum answer length, leave it out to remove",
        required="Whether the field must be answered (defaults to true)",
    )
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_validation(
        self,
        interaction: Interaction,
        form: str,
        field: str,
        min_length: Optional[app_commands.Range[int, 0, 1024]] = None,
        max_length: Optional[app_commands.Range[int, 1, 1024]] = None,
        required: bool = True,
    ):
        """Set the answer rules of a field."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            target = entity.fields[resolve_field(entity, field)]
            target.set_bounds(min_length, max_length)
            target.Required = required
            label = target.Label
        await send_ephemeral(interaction, self._s("fields.updated", label=label))

    @fields_group.command(name="inline")
    @app_commands.describe(form="The form to update", field="The field to update", inline="Show the answer inline")
    @app_commands.autocomplete(form=_form_autocomplete, field=_field_autocomplete)
    async def _field_inline(self, interaction: Interaction, form: str, field: str, inline: bool):
        """Choose whether a field's answer is shown inline in submissions."""
        with self.bot.session_scope() as session:
            entity = self._get_form(form, interaction.guild_id, session)
            target = entity.fields[resolve_field(entity, field)]
            target.Inline = inline
            label = target.Label
        await send_ephemeral(interaction, self._s("fields.updated", label=label))

    # -- /forms cooldowns ----------------------------------------------------

    @cooldowns_group.command(name="clear")
    @app_commands.describe(form="The form to clear the cooldown for", user="The user whose cooldown is lifted")
    @app_commands.autocomplete(form=_form_autocomplete)
    async def _cooldowns_clear(self, interaction: Interaction, form: str, user: Member):
        """Let a user submit a form again right away."""
        with self.bot.session_scope() as session:
            form_id = self._get_form(form, interaction.guild_id, session).Id

        if await self.bot.enforcer.clear(interaction.guild_id, form_id, user.id):
            self.bot.log.info(f"forms: cleared cooldown of {user.id} for form {form_id} in guild {interaction.guild_id}")
            msg = self._s("cooldowns.clear.success", user=user.mention, name=form)
        else:
            msg = self._s("cooldowns.clear.none", user=user.mention, name=form)
        await send_ephemeral(interaction, msg, allowed_mentions=discord.AllowedMentions.none())


async def setup(bot):
    """adds this module to the bot"""
    await bot.add_cog(Forms(bot))
