from unittest.mock import AsyncMock, MagicMock

import pytest

from utils.helpers import error_context, parse_id, send_ephemeral

# --- parse_id ---


def test_parse_id_from_int():
    assert parse_id(123456789) == 123456789


def test_parse_id_from_string():
    assert parse_id(" 123456789 ") == 123456789


def test_parse_id_rejects_garbage():
    assert parse_id("abc") is None
    assert parse_id(None) is None


# --- send_ephemeral ---


def _response_interaction(done: bool):
    interaction = MagicMock()
    interaction.response.is_done.return_value = done
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


@pytest.mark.asyncio
async def test_send_ephemeral_initial_response():
    interaction = _response_interaction(done=False)
    await send_ephemeral(interaction, "hello")
    interaction.response.send_message.assert_awaited_once_with("hello", ephemeral=True)
    interaction.followup.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_ephemeral_followup():
    interaction = _response_interaction(done=True)
    await send_ephemeral(interaction, "hello")
    interaction.followup.send.assert_awaited_once_with("hello", ephemeral=True)


@pytest.mark.asyncio
async def test_send_ephemeral_embed_only():
    interaction = _response_interaction(done=False)
    embed = MagicMock()
    await send_ephemeral(interaction, embed=embed)
    interaction.response.send_message.assert_awaited_once_with(None, ephemeral=True, embed=embed)


# --- error_context ---


def _make_interaction(*, cmd_name="forms create", user_name="Alice", user_id=123, guild_name="TestGuild", guild_id=456):
    interaction = MagicMock(spec=["command", "user", "guild"])
    interaction.command.qualified_name = cmd_name
    interaction.user = MagicMock()
    interaction.user.__str__ = lambda self: user_name
    interaction.user.id = user_id
    interaction.guild = MagicMock()
    interaction.guild.name = guild_name
    interaction.guild.id = guild_id
    return interaction


def test_error_context_interaction():
    assert error_context(_make_interaction()) == "[TestGuild (456)] Alice (123) -> forms create"


def test_error_context_no_guild():
    interaction = _make_interaction()
    interaction.guild = None
    assert error_context(interaction) == "[DM] Alice (123) -> forms create"


def test_error_context_component():
    interaction = _make_interaction()
    interaction.command = None
    assert error_context(interaction) == "[TestGuild (456)] Alice (123) -> component"
