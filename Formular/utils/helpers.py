# -*- coding: utf-8 -*-

from discord import Interaction


def error_context(interaction: Interaction) -> str:
    """Short ``[guild (id)] user (id) -> command`` prefix for log lines."""
    guild = interaction.guild
    where = f"[{guild.name} ({guild.id})]" if guild is not None else "[DM]"
    command = interaction.command.qualified_name if interaction.command is not None else "component"
    return f"{where} {interaction.user} ({interaction.user.id}) -> {command}"


async def send_ephemeral(interaction: Interaction, msg: str | None = None, **kwargs) -> None:
    """Send an ephemeral message, choosing response vs followup based on whether the response is used."""
    if not interaction.response.is_done():
        await interaction.response.send_message(msg, ephemeral=True, **kwargs)
    else:
        await interaction.followup.send(msg, ephemeral=True, **kwargs)


def parse_id(value) -> int | None:
    """Parse a snowflake from an int or a numeric string; anything else yields None."""
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
