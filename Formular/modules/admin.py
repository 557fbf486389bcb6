# -*- coding: utf-8 -*-

from typing import Literal, Optional

from discord import Forbidden, HTTPException, Object
from discord.app_commands import CommandSyncFailure, MissingApplicationID, TranslationError
from discord.ext.commands import Cog, Context, Greedy, command

from utils.errors import FormularException


class Admin(Cog):
    """cog for the bot operators"""

    def __init__(self, bot):
        bot.log.info(f"loaded {__name__}")

        self.bot = bot

    async def cog_check(self, ctx: Context) -> bool:
        return ctx.author.id in self.bot.ops

    @command(name="sync")
    async def sync(
        self, ctx: Context, guilds: Greedy[Object], spec: Optional[Literal["local", "copy", "clear"]] = None
    ) -> None:
        """Sync the slash commands globally, to this guild, or to the given guilds. [operator]"""
        if not guilds:
            if spec is not None and ctx.guild is None:
                await ctx.send("Guild specific syncs only work inside a guild.")
                return
            if spec == "local":
                synced = await self.bot.tree.sync(guild=ctx.guild)
            elif spec == "copy":
                self.bot.tree.copy_global_to(guild=ctx.guild)
                synced = await self.bot.tree.sync(guild=ctx.guild)
            elif spec == "clear":
                self.bot.tree.clear_commands(guild=ctx.guild)
                await self.bot.tree.sync(guild=ctx.guild)
                synced = []
            else:
                synced = await self.bot.tree.sync()

            await ctx.send(f"Synced {len(synced)} commands {'globally' if spec is None else 'to the current guild.'}")
            return

        ret = 0
        for guild in guilds:
            try:
                await self.bot.tree.sync(guild=guild)
            except (CommandSyncFailure, Forbidden, MissingApplicationID, TranslationError) as ex:
                self.bot.log.debug(ex)
                raise FormularException("Could not sync commands to Discord API.") from ex
            except HTTPException as ex:
                self.bot.log.warning(f"sync to guild {guild.id} failed: {ex}")
            else:
                ret += 1

        await ctx.send(f"Synced the tree to {ret}/{len(guilds)}.")


async def setup(bot):
    """adds this module to the bot"""
    await bot.add_cog(Admin(bot))
