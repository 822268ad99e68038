# slots.py
import logging
from datetime import datetime
from typing import List

import sqlalchemy
from pydantic import BaseModel, ConfigDict, Field

from slot_swapper.data_models import SlotStatus, OWNER_SETTABLE_STATUSES
from slot_swapper.database import database, write_lock, STORAGE_ERRORS
from slot_swapper.errors import ConflictError, InvalidStatus, NotFoundOrForbidden, StorageError, ValidationError
from slot_swapper.models import events, users, to_utc

logger = logging.getLogger(__name__)


class Slot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    status: SlotStatus
    user_id: int = Field(alias="userId")

    @classmethod
    def from_record(cls, record) -> "Slot":
        return cls(
            id=record["id"],
            title=record["title"],
            start_time=record["start_time"],
            end_time=record["end_time"],
            status=record["status"],
            user_id=record["user_id"],
        )


class SwappableSlot(BaseModel):
    """A marketplace entry: another user's swappable slot and who owns it."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    owner_name: str = Field(alias="ownerName")


async def create_slot(owner_id: int, title: str, start_time: datetime, end_time: datetime) -> Slot:
    # end_time is not checked against start_time and overlaps are allowed
    if not title or start_time is None or end_time is None:
        raise ValidationError("Missing event data")
    start_time, end_time = to_utc(start_time), to_utc(end_time)

    query = events.insert().values(
        title=title,
        start_time=start_time,
        end_time=end_time,
        status=SlotStatus.BUSY.value,
        user_id=owner_id,
    )
    slot_id = await database.execute(query)
    logger.info("User %s created slot %s", owner_id, slot_id)
    return Slot(
        id=slot_id,
        title=title,
        start_time=start_time,
        end_time=end_time,
        status=SlotStatus.BUSY,
        user_id=owner_id,
    )


async def list_slots(owner_id: int) -> List[Slot]:
    query = events.select().where(events.c.user_id == owner_id).order_by(events.c.start_time)
    return [Slot.from_record(row) for row in await database.fetch_all(query)]


async def set_status(owner_id: int, slot_id: int, new_status: str) -> Slot:
    """
    Lets an owner toggle one of their slots between BUSY and SWAPPABLE.

    A slot that is missing and a slot owned by someone else both raise
    NotFoundOrForbidden. Slots locked in a pending swap cannot be toggled.
    Setting the status a slot already has is a no-op.
    """
    try:
        target = SlotStatus(new_status)
    except ValueError:
        raise InvalidStatus()
    if target not in OWNER_SETTABLE_STATUSES:
        raise InvalidStatus()

    async with write_lock:
        try:
            async with database.transaction():
                query = (
                    events.select()
                    .where(events.c.id == slot_id, events.c.user_id == owner_id)
                    .with_for_update()
                )
                record = await database.fetch_one(query)
                if record is None:
                    raise NotFoundOrForbidden("Event not found or you don't own this event.")

                slot = Slot.from_record(record)
                if slot.status == target:
                    return slot
                if slot.status == SlotStatus.SWAP_PENDING:
                    raise ConflictError("Event is part of a pending swap request.")

                await database.execute(
                    events.update().where(events.c.id == slot_id).values(status=target.value)
                )
        except STORAGE_ERRORS as exc:
            logger.exception("Failed to update status of slot %s", slot_id)
            raise StorageError() from exc

    logger.info("User %s set slot %s to %s", owner_id, slot_id, target.value)
    return slot.model_copy(update={"status": target})


async def list_swappable(excluding_owner_id: int) -> List[SwappableSlot]:
    query = sqlalchemy.select(
        events.c.id,
        events.c.title,
        events.c.start_time,
        events.c.end_time,
        users.c.name.label("owner_name"),
    ).select_from(
        events.join(users, events.c.user_id == users.c.id)
    ).where(
        events.c.status == SlotStatus.SWAPPABLE.value,
        events.c.user_id != excluding_owner_id,
    ).order_by(events.c.start_time)

    return [
        SwappableSlot(
            id=row["id"],
            title=row["title"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            owner_name=row["owner_name"],
        )
        for row in await database.fetch_all(query)
    ]
