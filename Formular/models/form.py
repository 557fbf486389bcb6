# -*- coding: utf-8 -*-
"""Form definition database models.

A ``Form`` owns an ordered list of at most ``MAX_FIELDS`` ``FormField`` rows. Field positions are kept
contiguous (``0..n-1``) by an ``ordering_list`` collection, so every mutation below is a plain in-memory
list operation; nothing is written until the caller's ``session_scope`` commits.
"""

import enum
from datetime import timedelta

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Unicode,
    UnicodeText,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from utils import database as db
from utils.errors import (
    FormCorruptedError,
    FormularCapacityError,
    FormularDuplicateLabelError,
    FormularNotFoundError,
    FormularValidationError,
)

# A Discord modal holds at most five text inputs.
MAX_FIELDS = 5
LABEL_MAX_LENGTH = 45
NAME_MAX_LENGTH = 45
PLACEHOLDER_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 4096
BUTTON_LABEL_MAX_LENGTH = 80
THREAD_NAME_MAX_LENGTH = 100
# Answers end up as embed field values.
FIELD_RESPONSE_MAX_LENGTH = 1024

DEFAULT_THREAD_NAME = "{user}"


class FieldStyle(str, enum.Enum):
    """Input style of a form field."""

    SHORT = "short"
    PARAGRAPH = "paragraph"


class ButtonColor(str, enum.Enum):
    """Colour of the open-form button."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"


class MentionKind(str, enum.Enum):
    """Kind of mentionable pinged when a submission is posted."""

    ROLE = "role"
    USER = "user"


def _check_length(value: str | None, limit: int, what: str, label: str | None = None) -> None:
    if value is not None and len(value) > limit:
        raise FormularValidationError(
            f"{what} must be at most {limit} characters.", label=label, reason="too_long", limit=limit
        )


class FormField(db.BASE):
    """Database entity model for a single input field of a form."""

    __tablename__ = "FormField"
    __table_args__ = (
        Index("FormField_FormId", "FormId"),
        # not unique: re-indexing a reordered form updates rows one by one
        Index("FormField_FormId_Position", "FormId", "Position"),
    )

    Id = Column(Integer, primary_key=True)
    FormId = Column(Integer, ForeignKey("Form.Id"), nullable=False)
    Position = Column(Integer, nullable=False)
    Label = Column(Unicode(LABEL_MAX_LENGTH), nullable=False)
    Style = Column(SAEnum(FieldStyle), nullable=False, default=FieldStyle.SHORT)
    Required = Column(Boolean, nullable=False, default=True)
    MinLength = Column(Integer, nullable=True)
    MaxLength = Column(Integer, nullable=True)
    Placeholder = Column(Unicode(PLACEHOLDER_MAX_LENGTH), nullable=True)
    Inline = Column(Boolean, nullable=False, default=False)

    form = relationship("Form", back_populates="fields")

    @classmethod
    def create(
        cls,
        label: str,
        style: FieldStyle = FieldStyle.SHORT,
        *,
        required: bool = True,
        min_length: int | None = None,
        max_length: int | None = None,
        placeholder: str | None = None,
        inline: bool = False,
    ) -> "FormField":
        """Build a validated, detached field. Its position is assigned when it is added to a form."""
        field = cls(Style=FieldStyle(style), Required=required, Inline=inline)
        field.set_label(label)
        field.set_placeholder(placeholder)
        field.set_bounds(min_length, max_length)
        return field

    def set_label(self, label: str) -> None:
        label = (label or "").strip()
        if not label:
            raise FormularValidationError("Field labels cannot be empty.", reason="empty")
        _check_length(label, LABEL_MAX_LENGTH, "Field labels")
        self.Label = label

    def set_placeholder(self, placeholder: str | None) -> None:
        _check_length(placeholder, PLACEHOLDER_MAX_LENGTH, "Placeholders", self.Label)
        self.Placeholder = placeholder or None

    def set_bounds(self, min_length: int | None, max_length: int | None) -> None:
        """Set the answer length bounds; ``None`` leaves a bound open."""
        if min_length is not None and not 0 <= min_length <= FIELD_RESPONSE_MAX_LENGTH:
            raise FormularValidationError(
                f"Minimum length must be between 0 and {FIELD_RESPONSE_MAX_LENGTH}.",
                label=self.Label,
                reason="bounds",
                limit=FIELD_RESPONSE_MAX_LENGTH,
            )
        if max_length is not None and not 1 <= max_length <= FIELD_RESPONSE_MAX_LENGTH:
            raise FormularValidationError(
                f"Maximum length must be between 1 and {FIELD_RESPONSE_MAX_LENGTH}.",
                label=self.Label,
                reason="bounds",
                limit=FIELD_RESPONSE_MAX_LENGTH,
            )
        if min_length is not None and max_length is not None and min_length > max_length:
            raise FormularValidationError(
                "Minimum length cannot be greater than maximum length.", label=self.Label, reason="bounds"
            )
        self.MinLength = min_length
        self.MaxLength = max_length

    @property
    def min_length(self) -> int:
        """Lower bound enforced on non-empty answers; required fields need at least one character."""
        if self.MinLength is not None:
            return max(self.MinLength, 1 if self.Required else 0)
        return 1 if self.Required else 0

    @property
    def max_length(self) -> int:
        return self.MaxLength if self.MaxLength is not None else FIELD_RESPONSE_MAX_LENGTH


class Form(db.BASE):
    """Database entity model for a guild's form."""

    __tablename__ = "Form"
    __table_args__ = (
        Index("Form_GuildId", "GuildId"),
        Index("Form_Name_GuildId", "Name", "GuildId", unique=True),
        CheckConstraint("CooldownSeconds >= 0", name="ck_form_cooldown"),
        # deleted ids are never reused
        {"sqlite_autoincrement": True},
    )

    Id = Column(Integer, primary_key=True)
    GuildId = Column(BigInteger, nullable=False)
    Name = Column(Unicode(NAME_MAX_LENGTH), nullable=False)
    Description = Column(UnicodeText, nullable=True)
    DestinationChannelId = Column(BigInteger, nullable=False)
    ThreadNameTemplate = Column(Unicode(THREAD_NAME_MAX_LENGTH), nullable=False, default=DEFAULT_THREAD_NAME)
    MentionId = Column(BigInteger, nullable=True)
    MentionType = Column(SAEnum(MentionKind), nullable=True)
    CooldownSeconds = Column(Integer, nullable=False, default=0)
    ButtonLabel = Column(Unicode(BUTTON_LABEL_MAX_LENGTH), nullable=True)
    ButtonStyle = Column(SAEnum(ButtonColor), nullable=False, default=ButtonColor.PRIMARY)

    fields = relationship(
        "FormField",
        back_populates="form",
        cascade="all, delete, delete-orphan",
        order_by="FormField.Position",
        collection_class=ordering_list("Position"),
        lazy="joined",
    )

    @classmethod
    def create(
        cls,
        guild_id: int,
        name: str,
        destination_channel_id: int,
        *,
        description: str | None = None,
        cooldown: timedelta | None = None,
    ) -> "Form":
        """Build a validated, empty form."""
        form = cls(
            GuildId=guild_id,
            DestinationChannelId=destination_channel_id,
            ThreadNameTemplate=DEFAULT_THREAD_NAME,
            CooldownSeconds=0,
            ButtonStyle=ButtonColor.PRIMARY,
        )
        form.set_name(name)
        form.set_description(description)
        form.set_cooldown(cooldown)
        return form

    @classmethod
    def get(cls, name, guild_id, session):
        """Returns a form by name and guild."""
        return session.query(cls).filter(cls.Name == name, cls.GuildId == guild_id).first()

    @classmethod
    def get_by_id(cls, form_id, guild_id, session):
        """Returns a form by its primary key, scoped to the guild."""
        return session.query(cls).filter(cls.Id == form_id, cls.GuildId == guild_id).first()

    @classmethod
    def get_all_by_guild(cls, guild_id, session):
        """Returns all forms for a guild."""
        return session.query(cls).filter(cls.GuildId == guild_id).order_by(cls.Name).all()

    @classmethod
    def delete_by_name(cls, name, guild_id, session):
        """Deletes a form (and its fields) by name and guild. Returns the deleted form's id, or None."""
        form = cls.get(name, guild_id, session)
        if form is None:
            return None
        form_id = form.Id
        session.delete(form)
        return form_id

    # -- attributes ------------------------------------------------------------

    def set_name(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise FormularValidationError("Form names cannot be empty.", reason="empty")
        _check_length(name, NAME_MAX_LENGTH, "Form names")
        self.Name = name

    def set_description(self, description: str | None) -> None:
        _check_length(description, DESCRIPTION_MAX_LENGTH, "Descriptions")
        self.Description = description or None

    def set_cooldown(self, cooldown: timedelta | None) -> None:
        """Set the cooldown; ``None`` or zero disables it. Sub-second parts are dropped."""
        self.CooldownSeconds = int(cooldown.total_seconds()) if cooldown else 0

    @property
    def cooldown(self) -> timedelta:
        return timedelta(seconds=self.CooldownSeconds or 0)

    def set_thread_name(self, template: str | None) -> None:
        template = (template or "").strip() or DEFAULT_THREAD_NAME
        _check_length(template, THREAD_NAME_MAX_LENGTH, "Thread names")
        self.ThreadNameTemplate = template

    def render_thread_name(self, user_name: str) -> str:
        """Fill ``{user}`` and ``{form}`` into the thread name template."""
        template = self.ThreadNameTemplate or DEFAULT_THREAD_NAME
        name = template.replace("{user}", user_name).replace("{form}", self.Name).strip()
        return (name or user_name)[:THREAD_NAME_MAX_LENGTH]

    def set_button(self, label: str | None, style: ButtonColor | None = None) -> None:
        _check_length(label, BUTTON_LABEL_MAX_LENGTH, "Button labels")
        self.ButtonLabel = label or None
        if style is not None:
            self.ButtonStyle = ButtonColor(style)

    def set_mention(self, mention_id: int | None, mention_type: MentionKind | None) -> None:
        if mention_id is None:
            self.MentionId = None
            self.MentionType = None
        else:
            self.MentionId = mention_id
            self.MentionType = MentionKind(mention_type)

    @property
    def mention(self) -> str | None:
        if self.MentionId is None:
            return None
        if self.MentionType == MentionKind.ROLE:
            return f"<@&{self.MentionId}>"
        return f"<@{self.MentionId}>"

    # -- field list ------------------------------------------------------------

    def field_at(self, position: int) -> FormField:
        if not 0 <= position < len(self.fields):
            raise FormularNotFoundError(f"Form '{self.Name}' has no field at position {position + 1}.")
        return self.fields[position]

    def find_field(self, label: str) -> FormField | None:
        """Case-insensitive label lookup."""
        wanted = label.strip().casefold()
        for field in self.fields:
            if field.Label.casefold() == wanted:
                return field
        return None

    def add_field(self, field: FormField, before: int | None = None) -> FormField:
        """Append ``field``, or insert it in front of the field at position ``before``.

        The form is left untouched when any check fails.
        """
        if len(self.fields) >= MAX_FIELDS:
            raise FormularCapacityError(f"Form '{self.Name}' already has the maximum of {MAX_FIELDS} fields.")
        if self.find_field(field.Label) is not None:
            raise FormularDuplicateLabelError(f"Form '{self.Name}' already has a field labeled '{field.Label}'.")
        if before is not None and not 0 <= before < len(self.fields):
            raise FormularValidationError(
                f"Position must be between 1 and {len(self.fields)}.", reason="position", limit=len(self.fields)
            )

        field.Position = None
        if before is None:
            self.fields.append(field)
        else:
            self.fields.insert(before, field)
        return field

    def rename_field(self, position: int, label: str) -> FormField:
        field = self.field_at(position)
        other = self.find_field(label)
        if other is not None and other is not field:
            raise FormularDuplicateLabelError(f"Form '{self.Name}' already has a field labeled '{label.strip()}'.")
        field.set_label(label)
        return field

    def remove_field(self, position: int) -> FormField:
        """Remove the field at ``position``; the fields behind it move up one position."""
        self.field_at(position)
        return self.fields.pop(position)

    def reorder_fields(self, new_order: list[int]) -> None:
        """Rearrange fields so that the field currently at ``new_order[i]`` ends up at position ``i``."""
        count = len(self.fields)
        if sorted(new_order) != list(range(count)):
            raise FormularValidationError(
                f"The new order must list every position from 1 to {count} exactly once.",
                reason="permutation",
                limit=count,
            )

        rank = {id(self.fields[old]): new for new, old in enumerate(new_order)}
        self.fields.sort(key=lambda f: rank[id(f)])
        self.fields.reorder()

    def move_field(self, position: int, destination: int) -> None:
        """Move a single field to ``destination``, shifting the fields in between."""
        self.field_at(position)
        if not 0 <= destination < len(self.fields):
            raise FormularValidationError(
                f"The form has {len(self.fields)} fields, so the position must be between 1 and {len(self.fields)}.",
                reason="position",
                limit=len(self.fields),
            )
        order = list(range(len(self.fields)))
        order.pop(position)
        order.insert(destination, position)
        self.reorder_fields(order)

    def check_integrity(self) -> None:
        """Raise ``FormCorruptedError`` if the stored field list breaks the model invariants."""
        positions = [field.Position for field in self.fields]
        if len(positions) > MAX_FIELDS or positions != list(range(len(positions))):
            raise FormCorruptedError(
                f"Form {self.Id} in guild {self.GuildId} has corrupt field positions {positions}.",
                form_id=self.Id,
                guild_id=self.GuildId,
            )
