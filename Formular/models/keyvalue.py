# -*- coding: utf-8 -*-
"""Key-value entries with expiry, backing the cooldown store"""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Index, Unicode

from utils import database as db


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class KeyValueEntry(db.BASE):
    """Database entity model for a single expiring key."""

    __tablename__ = "KeyValueEntry"
    __table_args__ = (Index("KeyValueEntry_ExpiresAt", "ExpiresAt"),)

    Key = Column(Unicode(200), primary_key=True)
    Value = Column(Unicode(200), nullable=False)
    ExpiresAt = Column(DateTime(timezone=True), nullable=False)

    @classmethod
    def get_live(cls, key, now, session):
        """Returns the entry for ``key`` unless it has expired."""
        return session.query(cls).filter(cls.Key == key, cls.ExpiresAt > now).first()

    @classmethod
    def take_over_expired(cls, key, value, expires_at, now, session) -> bool:
        """Overwrite ``key`` only if its current entry has expired. Returns True if this call won."""
        updated = (
            session.query(cls)
            .filter(cls.Key == key, cls.ExpiresAt <= now)
            .update({cls.Value: value, cls.ExpiresAt: expires_at}, synchronize_session=False)
        )
        return updated == 1

    @classmethod
    def delete_key(cls, key, session, value=None) -> bool:
        """Deletes ``key``, or only its entry holding ``value`` when given. Returns True if a row was removed."""
        query = session.query(cls).filter(cls.Key == key)
        if value is not None:
            query = query.filter(cls.Value == value)
        return query.delete(synchronize_session=False) > 0

    @classmethod
    def delete_prefix(cls, prefix, session) -> int:
        """Deletes every entry whose key starts with ``prefix`` and returns how many were removed."""
        return session.query(cls).filter(cls.Key.startswith(prefix, autoescape=True)).delete(synchronize_session=False)

    @classmethod
    def purge_expired(cls, now, session) -> int:
        """Deletes every expired entry and returns how many were removed."""
        return session.query(cls).filter(cls.ExpiresAt <= now).delete(synchronize_session=False)
