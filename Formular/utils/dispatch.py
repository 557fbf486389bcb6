# -*- coding: utf-8 -*-
"""Delivers submissions into private threads under the form's destination channel."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

import discord

from models.form import Form
from utils.dialog import Submission
from utils.errors import DispatchError
from utils.format import pagify

DEFAULT_TIMEOUT = 10.0
ONE_WEEK_MINUTES = 10080


@dataclass(frozen=True)
class ThreadRef:
    """Opaque handle on the thread a submission was posted to."""

    thread_id: int
    mention: str
    jump_url: str | None = None


class ThreadDispatcher(ABC):
    @abstractmethod
    async def dispatch(self, form: Form, submission: Submission, member) -> ThreadRef:
        """Post ``submission`` for ``member``. Raises ``DispatchError`` on any delivery failure.

        Delivery is at-least-once: a retry after a failure that happened late (e.g. while adding the member)
        can leave a second thread behind.
        """


def build_submission_embed(form: Form, submission: Submission, member) -> discord.Embed:
    """Build the embed posted into the submission thread."""
    embed = discord.Embed(title=form.Name, colour=discord.Colour.blurple(), timestamp=submission.submitted_at)
    embed.set_author(name=member.display_name, icon_url=member.display_avatar.url)
    for answer in submission.answers:
        embed.add_field(name=answer.label, value=answer.value.strip() or "_No answer_", inline=answer.inline)
    embed.set_footer(text=f"User ID: {submission.user_id}")
    return embed


class DiscordThreadDispatcher(ThreadDispatcher):
    def __init__(self, bot, timeout: float = DEFAULT_TIMEOUT):
        self.bot = bot
        self.timeout = timeout

    async def _get_channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def _dispatch(self, form: Form, submission: Submission, member) -> ThreadRef:
        channel = await self._get_channel(form.DestinationChannelId)
        thread = await channel.create_thread(
            name=form.render_thread_name(member.display_name),
            type=discord.ChannelType.private_thread,
            auto_archive_duration=ONE_WEEK_MINUTES,
            invitable=False,
        )

        header = "\n".join(part for part in (form.mention, form.Description) if part)
        pages = list(pagify(header)) if header else []
        allowed = discord.AllowedMentions(everyone=False, users=True, roles=True)
        for page in pages[:-1]:
            await thread.send(page, allowed_mentions=allowed)
        await thread.send(
            content=pages[-1] if pages else None,
            embed=build_submission_embed(form, submission, member),
            allowed_mentions=allowed,
        )
        await thread.add_user(member)
        return ThreadRef(thread_id=thread.id, mention=thread.mention, jump_url=thread.jump_url)

    async def dispatch(self, form: Form, submission: Submission, member) -> ThreadRef:
        try:
            return await asyncio.wait_for(self._dispatch(form, submission, member), timeout=self.timeout)
        except TimeoutError as ex:
            raise DispatchError(f"Posting the submission for form {form.Id} timed out after {self.timeout}s.") from ex
        except discord.HTTPException as ex:
            raise DispatchError(f"Discord rejected the submission thread for form {form.Id}: {ex}") from ex
