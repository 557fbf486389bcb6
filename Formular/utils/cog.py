# -*- coding: utf-8 -*-


class FormularCog:
    """Base mixin for Formular cogs. Sets ``self.bot`` and logs the module load."""

    def __init__(self, bot):
        super().__init__()
        self.bot = bot
        bot.log.info(f"loaded {self.__module__}")
