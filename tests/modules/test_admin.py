# -*- coding: utf-8 -*-
"""Tests for modules/admin.py - operator commands"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modules.admin import Admin
from utils.errors import FormularException


@pytest.fixture
def admin_cog(mock_bot):
    """Create an Admin cog instance for testing."""
    mock_bot.ops = [123456789]
    mock_bot.tree = MagicMock()
    mock_bot.tree.sync = AsyncMock(return_value=[MagicMock(), MagicMock()])
    return Admin(mock_bot)


class TestCogCheck:
    @pytest.mark.asyncio
    async def test_operator_allowed(self, admin_cog, mock_context):
        assert await admin_cog.cog_check(mock_context) is True

    @pytest.mark.asyncio
    async def test_other_user_rejected(self, admin_cog, mock_context):
        mock_context.author.id = 1
        assert await admin_cog.cog_check(mock_context) is False


class TestSync:
    @pytest.mark.asyncio
    async def test_global(self, admin_cog, mock_context, mock_bot):
        await admin_cog.sync.callback(admin_cog, mock_context, [], None)

        mock_bot.tree.sync.assert_awaited_once_with()
        mock_context.send.assert_awaited_once_with("Synced 2 commands globally")

    @pytest.mark.asyncio
    async def test_copy_to_current_guild(self, admin_cog, mock_context, mock_bot, mock_guild):
        await admin_cog.sync.callback(admin_cog, mock_context, [], "copy")

        mock_bot.tree.copy_global_to.assert_called_once_with(guild=mock_guild)
        mock_bot.tree.sync.assert_awaited_once_with(guild=mock_guild)

    @pytest.mark.asyncio
    async def test_clear(self, admin_cog, mock_context, mock_bot, mock_guild):
        await admin_cog.sync.callback(admin_cog, mock_context, [], "clear")

        mock_bot.tree.clear_commands.assert_called_once_with(guild=mock_guild)
        mock_context.send.assert_awaited_once_with("Synced 0 commands to the current guild.")

    @pytest.mark.asyncio
    async def test_guild_spec_outside_guild(self, admin_cog, mock_context, mock_bot):
        mock_context.guild = None
        await admin_cog.sync.callback(admin_cog, mock_context, [], "local")

        mock_bot.tree.sync.assert_not_awaited()
        mock_context.send.assert_awaited_once_with("Guild specific syncs only work inside a guild.")

    @pytest.mark.asyncio
    async def test_listed_guilds(self, admin_cog, mock_context, mock_bot):
        response = MagicMock(status=500, reason="Server Error")
        mock_bot.tree.sync.side_effect = [[], discord.HTTPException(response, "oops")]
        guilds = [discord.Object(id=1), discord.Object(id=2)]

        await admin_cog.sync.callback(admin_cog, mock_context, guilds, None)

        mock_context.send.assert_awaited_once_with("Synced the tree to 1/2.")
        mock_bot.log.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_forbidden_raises(self, admin_cog, mock_context, mock_bot):
        response = MagicMock(status=403, reason="Forbidden")
        mock_bot.tree.sync.side_effect = discord.Forbidden(response, "Missing Access")

        with pytest.raises(FormularException):
            await admin_cog.sync.callback(admin_cog, mock_context, [discord.Object(id=1)], None)
