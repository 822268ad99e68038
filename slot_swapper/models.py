# models.py
from datetime import datetime, timezone

import sqlalchemy
from slot_swapper.database import metadata


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(sqlalchemy.TypeDecorator):
    """
    Stores every instant in UTC and hands it back timezone-aware.

    SQLite keeps no offset, so values are normalized before they are written;
    that also keeps ORDER BY on the column in instant order.
    """
    impl = sqlalchemy.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return to_utc(value)


#'users' table
users = sqlalchemy.Table(
    "users",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("email", sqlalchemy.String, unique=True, index=True, nullable=False),
    sqlalchemy.Column("hashed_password", sqlalchemy.String, nullable=False),
)

#'events' table, one row per slot
events = sqlalchemy.Table(
    "events",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("title", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("start_time", UTCDateTime(), nullable=False),
    sqlalchemy.Column("end_time", UTCDateTime(), nullable=False),
    sqlalchemy.Column("status", sqlalchemy.String, nullable=False, default="BUSY"),
    sqlalchemy.Column("user_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("users.id"), nullable=False, index=True),
    sqlalchemy.CheckConstraint("status IN ('BUSY', 'SWAPPABLE', 'SWAP_PENDING')", name="ck_events_status"),
)

swap_requests = sqlalchemy.Table(
    "swap_requests",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("requested_slot_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("events.id"), nullable=False),
    sqlalchemy.Column("offered_slot_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("events.id"), nullable=False),
    sqlalchemy.Column("requester_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("users.id"), nullable=False),
    sqlalchemy.Column("owner_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("users.id"), nullable=False),
    sqlalchemy.Column("status", sqlalchemy.String, nullable=False, default="PENDING"),
    sqlalchemy.CheckConstraint("status IN ('PENDING', 'ACCEPTED', 'REJECTED')", name="ck_swap_requests_status"),
)
