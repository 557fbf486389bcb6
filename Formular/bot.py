# -*- coding: utf-8 -*-
"""
Main Class of the Formular bot
"""

import os
from asyncio import run
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from traceback import format_exc, print_exc
from typing import Annotated, Any, Generator, Optional
from warnings import filterwarnings

import typer
import yaml
from discord import ClientException, Game, Intents, Interaction, LoginFailure, app_commands
from discord.ext import commands
from discord.ext.commands import Bot, CommandError, CommandNotFound, Context, ExtensionFailed
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from modules.views.forms import OpenFormButton, report_error
from utils import logging
from utils.cooldown import CooldownEnforcer
from utils.database import BASE
from utils.dispatch import DiscordThreadDispatcher
from utils.errors import FormularException, FormularInfraException, SilentCheckFailure
from utils.helpers import error_context, parse_id, send_ephemeral
from utils.pipeline import SubmissionPipeline
from utils.store import SqlKeyValueStore
from utils.strings import available_languages, get_string, load_strings

MODULES = ["admin", "forms"]


class FormularBot(Bot):
    """Discord Bot"""

    def __init__(self, config: dict, intents: Intents, debug: bool):
        super().__init__(
            command_prefix=commands.when_mentioned,
            description="Formular - forms for your server.",
            intents=intents,
            help_command=None,
        )

        self.config = config
        self.debug = debug
        self.client_id = parse_id(config["bot"].get("client_id"))
        self.token = config["bot"].get("token")
        self.ops = [parse_id(op) for op in config["bot"].get("ops", [])]
        self.language = config["bot"].get("language", "en")
        self.restart = True
        self.log = logging.get_logger("formular")
        self.uptime = datetime.now(UTC)

        # database variables
        db_connection_string = self.build_connection_string(config)
        if "database" not in config:
            self.log.warning("No Database specified! Fallback to local SQLite Database!")

        self.ENGINE = create_engine(db_connection_string)
        self.SESSION = sessionmaker(bind=self.ENGINE, expire_on_commit=False)

        store_config = config.get("store", {})
        dispatch_config = config.get("dispatch", {})
        self.store = SqlKeyValueStore(self.SESSION, timeout=float(store_config.get("timeout", 5)))
        self.enforcer = CooldownEnforcer(self.store)
        self.dispatcher = DiscordThreadDispatcher(self, timeout=float(dispatch_config.get("timeout", 10)))
        self.pipeline = SubmissionPipeline(self, self.enforcer, self.dispatcher)

    @staticmethod
    def build_connection_string(config: dict) -> str:
        """Build a SQLAlchemy connection string from the bot config.

        Returns ``"sqlite:///db.db"`` when no database section is present.
        """
        if "database" not in config:
            return "sqlite:///db.db"

        database_config = config["database"]
        db_type = database_config["db_type"]
        db_name = database_config["db_name"]
        db_username = ""
        db_password = ""
        db_host = ""
        db_port = ""

        if "postgresql" in db_type:
            db_type = f"{db_type}+psycopg"

        if database_config.get("db_password"):
            db_password = f":{database_config['db_password']}"
        if database_config.get("db_username"):
            db_username = database_config["db_username"]
        if database_config.get("db_host"):
            db_host = f"@{database_config['db_host']}"
        if database_config.get("db_port"):
            db_port = f":{database_config['db_port']}"

        db_authentication = f"{db_username}{db_password}{db_host}{db_port}"
        return f"{db_type}://{db_authentication}/{db_name}"

    def create_all(self) -> None:
        """creates all tables previously defined"""
        BASE.metadata.create_all(self.ENGINE)

    @contextmanager
    def session_scope(self) -> Generator[Session, Any, None]:
        """Provide a transactional scope around a series of operations."""
        session = self.SESSION()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            self.log.error(exc)
            raise FormularInfraException("A database error occurred.") from exc
        finally:
            session.close()

    async def setup_hook(self) -> None:
        """
        Discord Bot setup_hook
        Loads strings, creates tables and loads modules
        """
        self.tree.on_error = self._on_app_command_error

        # load localization strings
        load_strings()
        if self.language not in available_languages():
            self.log.warning(f"Language '{self.language}' is not available, falling back to English.")
            self.language = "en"

        # create database/tables and such stuff
        self.create_all()

        for module in MODULES:
            try:
                await self.load_extension(f"modules.{module}")
            except (ImportError, ExtensionFailed, ClientException) as e:
                self.log.error(f"failed to load extension {module}. {e}")
                self.log.debug(print_exc())

        # buttons on old messages keep working after a restart
        self.add_dynamic_items(OpenFormButton)

    async def on_ready(self) -> None:
        """calls when successfully logged in"""
        self.log.info(f"Logged in as {self.user} (ID: {self.user.id})")

    # noinspection PyUnusedLocal
    async def on_app_command_completion(self, interaction: Interaction, command: app_commands.Command) -> None:
        """Log successful slash command invocations."""
        self.log.debug(error_context(interaction))

    async def _on_app_command_error(self, interaction: Interaction, error: app_commands.AppCommandError) -> None:
        """Handle errors from slash commands."""
        err_ctx = error_context(interaction)

        if isinstance(error, app_commands.CheckFailure):
            if isinstance(error, SilentCheckFailure):
                self.log.warning(f"{err_ctx}: {error}")
                return
            self.log.warning(f"{err_ctx}: {error}")
            await send_ephemeral(interaction, str(error))
        elif isinstance(error, app_commands.CommandInvokeError):
            # report_error logs with context and localizes the reply
            await report_error(interaction, error.original)
        else:
            self.log.error(f"{err_ctx}: {error}")

    async def on_command_error(self, ctx: Context, error) -> None:
        """Handle errors from prefix commands (sync)."""
        if isinstance(error, CommandNotFound):
            return
        if isinstance(error, commands.CheckFailure):
            self.log.warning(f"{ctx.author} ({ctx.author.id}) -> {ctx.command}: {error}")
            return
        if isinstance(error, commands.CommandInvokeError) and isinstance(error.original, FormularException):
            self.log.error(f"{ctx.author} ({ctx.author.id}) -> {ctx.command}: {error.original}")
            await ctx.send(str(error.original))
        elif isinstance(error, CommandError):
            self.log.error(f"{ctx.author} ({ctx.author.id}) -> {ctx.command}: {error}")
            await ctx.send(get_string(self.language, "bot.error_generic"))

    async def start(self, token: str = None, reconnect: bool = True) -> None:
        """
        connects the discord bot to the server

        :param token: str
        :param reconnect: bool
        """
        self.log.info("Logging into Discord...")
        if self.token:
            self.activity = Game(name="Use /forms to get started")
            await self.login(self.token)
        else:
            self.log.critical("No credentials available to login.")
            raise RuntimeError()
        await self.connect(reconnect=self.restart)

    async def shutdown(self) -> None:
        """
        shutting down discord nicely
        """
        self.log.info("shutting down server!")
        self.restart = False
        await self.close()


def get_intents() -> Intents:
    intents = Intents.default()
    intents.message_content = True
    return intents


def _csv(value: str) -> list[str]:
    return [x.strip() for x in value.split(",") if x.strip()]


def _set_nested(d: dict, keys: list[str], value) -> None:
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = value


def parse_env_config() -> dict:
    """Read FORMULAR_* environment variables and return a config dict."""
    env: dict = {}
    mappings = [
        ("FORMULAR_TOKEN", ["bot", "token"], str),
        ("FORMULAR_CLIENT_ID", ["bot", "client_id"], str),
        ("FORMULAR_OPS", ["bot", "ops"], _csv),
        ("FORMULAR_LANGUAGE", ["bot", "language"], str),
        ("FORMULAR_DB_TYPE", ["database", "db_type"], str),
        ("FORMULAR_DB_NAME", ["database", "db_name"], str),
        ("FORMULAR_DB_USERNAME", ["database", "db_username"], str),
        ("FORMULAR_DB_PASSWORD", ["database", "db_password"], str),
        ("FORMULAR_DB_HOST", ["database", "db_host"], str),
        ("FORMULAR_DB_PORT", ["database", "db_port"], str),
        ("FORMULAR_STORE_TIMEOUT", ["store", "timeout"], float),
        ("FORMULAR_STORE_PURGE_INTERVAL", ["store", "purge_interval_minutes"], int),
        ("FORMULAR_DISPATCH_TIMEOUT", ["dispatch", "timeout"], float),
    ]
    for var_name, keys, converter in mappings:
        value = os.environ.get(var_name)
        if value:
            _set_nested(env, keys, converter(value))
    return env


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base; override wins on conflicts."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def parse_config(config_path: Optional[Path] = None) -> dict:
    config = {}
    path = config_path or Path("./config.yaml")
    if path.exists():
        with open(path) as stream:
            try:
                config = yaml.safe_load(stream) or {}
            except yaml.YAMLError as exc:
                print(f"Error in configuration file: {exc}")
    return deep_merge(config, parse_env_config())


app = typer.Typer(add_completion=False)


@app.command()
def main(
    config: Annotated[Optional[Path], typer.Option("--config", "-c", help="Config file path")] = None,
    debug: Annotated[bool, typer.Option("--debug", "-d", help="Enable debug logging")] = False,
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)")] = "INFO",
    verbosity: Annotated[
        int, typer.Option("--verbosity", "-v", help="Verbosity: 1=DEBUG, 2=+discord, 3=+sqlalchemy")
    ] = 0,
) -> None:
    """Formular: forms and submissions for Discord servers."""
    filterwarnings("ignore", category=DeprecationWarning, module=r"discord\.http")

    resolved_config = parse_config(config)
    intents = get_intents()

    is_debug = debug or str(loglevel).upper() == "DEBUG" or verbosity > 0
    loggers = ["formular", "modules", "utils"]
    if verbosity >= 2:
        loggers.append("discord")
    if verbosity >= 3:
        loggers.append("sqlalchemy.engine")

    if "bot" not in resolved_config:
        raise FormularInfraException("Bot config not found.")

    resolved_loglevel = "DEBUG" if (debug or verbosity > 0) else loglevel
    for logger_name in loggers:
        logging.create_logger(resolved_loglevel, logger_name)
    bot = FormularBot(resolved_config, intents, is_debug)

    try:
        run(bot.start())
    except LoginFailure:
        bot.log.error(format_exc())
        bot.log.error("Failed to login")
    except KeyboardInterrupt:
        bot.log.info("Received KeyboardInterrupt, shutting down.")


if __name__ == "__main__":
    app()
