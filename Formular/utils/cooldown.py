# -*- coding: utf-8 -*-
"""Per-user, per-form submission cooldowns.

A cooldown record lives in the key-value store under ``forms:{guild}:{form}:{user}``. Its value is the
ISO-8601 expiry instant and its TTL is the cooldown itself, so records clean themselves up and the
enforcer never sweeps. There are no in-process locks: two processes racing for the same record are
settled by the store's atomic ``set_if_absent``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from utils.errors import StoreUnavailableError
from utils.store import KeyValueStore, utcnow

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CooldownStatus:
    """Outcome of a cooldown check: ``allowed``, or denied with the ``remaining`` wait."""

    allowed: bool
    remaining: timedelta = timedelta(0)


ALLOWED = CooldownStatus(allowed=True)


def form_key_prefix(guild_id: int, form_id: int) -> str:
    return f"forms:{guild_id}:{form_id}:"


def cooldown_key(guild_id: int, form_id: int, user_id: int) -> str:
    return f"{form_key_prefix(guild_id, form_id)}{user_id}"


class CooldownEnforcer:
    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    def _denied(self, key: str, stored: str, now: datetime) -> CooldownStatus:
        try:
            expires_at = datetime.fromisoformat(stored)
        except ValueError as ex:
            raise StoreUnavailableError(f"Cooldown record {key} holds a malformed expiry: {stored!r}") from ex
        return CooldownStatus(allowed=False, remaining=max(expires_at - now, timedelta(0)))

    async def check_and_reserve(
        self, guild_id: int, form_id: int, user_id: int, cooldown: timedelta
    ) -> CooldownStatus:
        """Atomically check the cooldown and, if the user may submit, start it.

        Of any number of concurrent calls for the same user and form exactly one is allowed. A zero
        cooldown is always allowed and never touches the store.
        """
        if cooldown <= timedelta(0):
            return ALLOWED

        key = cooldown_key(guild_id, form_id, user_id)
        # a record that expires between the failed set and the read is retried once
        for _ in range(2):
            now = self._clock()
            if await self.store.set_if_absent(key, (now + cooldown).isoformat(), cooldown):
                log.debug("cooldown %s reserved for %s", key, cooldown)
                return ALLOWED
            stored = await self.store.get(key)
            if stored is not None:
                status = self._denied(key, stored, now)
                log.debug("cooldown %s denied, %s remaining", key, status.remaining)
                return status

        raise StoreUnavailableError(f"Cooldown record {key} kept changing while it was being reserved.")

    async def peek(self, guild_id: int, form_id: int, user_id: int, cooldown: timedelta) -> CooldownStatus:
        """Read-only cooldown check, used before a dialog is shown."""
        if cooldown <= timedelta(0):
            return ALLOWED

        key = cooldown_key(guild_id, form_id, user_id)
        stored = await self.store.get(key)
        if stored is None:
            return ALLOWED
        return self._denied(key, stored, self._clock())

    async def release(self, guild_id: int, form_id: int, user_id: int, cooldown: timedelta) -> bool:
        """Undo a reservation whose submission could not be delivered."""
        if cooldown <= timedelta(0):
            return False
        return await self.store.delete(cooldown_key(guild_id, form_id, user_id))

    async def clear(self, guild_id: int, form_id: int, user_id: int) -> bool:
        """Lift a user's cooldown for a form. Returns True if the user was on cooldown."""
        key = cooldown_key(guild_id, form_id, user_id)
        if await self.store.get(key) is None:
            return False
        return await self.store.delete(key)

    async def clear_form(self, guild_id: int, form_id: int) -> int:
        """Drop every cooldown of a deleted form. Returns how many records were removed."""
        return await self.store.delete_prefix(form_key_prefix(guild_id, form_id))
