# swaps.py
import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List

import sqlalchemy
from databases import Database
from pydantic import BaseModel, ConfigDict, Field

from slot_swapper.data_models import SlotStatus, SwapParties, SwapStatus
from slot_swapper.database import database, write_lock, STORAGE_ERRORS
from slot_swapper.errors import InvalidOffer, InvalidTarget, NotFoundOrForbidden, StorageError
from slot_swapper.models import events, swap_requests, users

logger = logging.getLogger(__name__)


class SwapRequestView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    status: SwapStatus
    requested_slot_title: str = Field(alias="requestedSlotTitle")
    requested_slot_start: datetime = Field(alias="requestedSlotStart")
    offered_slot_title: str = Field(alias="offeredSlotTitle")
    offered_slot_start: datetime = Field(alias="offeredSlotStart")


class IncomingRequest(SwapRequestView):
    requester_name: str = Field(alias="requesterName")


class OutgoingRequest(SwapRequestView):
    owner_name: str = Field(alias="ownerName")


class SwapNegotiationEngine:
    """
    Owns swap requests and moves them from PENDING to ACCEPTED or REJECTED.

    Creating a request locks both slots in SWAP_PENDING, which takes them out
    of the swappable pool so neither can be part of a second negotiation.
    Resolving a request either exchanges the owners of the two slots and marks
    them BUSY, or hands both back to the pool as SWAPPABLE.

    Every mutation runs as a single transaction under the store's write lock,
    so either all of its writes are visible or none are.
    """

    def __init__(self, db: Database = database, lock: asyncio.Lock = write_lock):
        self.db = db
        self.lock = lock

    async def create_request(self, requester_id: int, offered_slot_id: int, requested_slot_id: int) -> SwapParties:
        async with self.lock:
            try:
                async with self.db.transaction():
                    offered = await self._fetch_slot(offered_slot_id)
                    if (
                        offered is None
                        or offered["user_id"] != requester_id
                        or offered["status"] != SlotStatus.SWAPPABLE.value
                    ):
                        raise InvalidOffer()

                    requested = await self._fetch_slot(requested_slot_id)
                    if (
                        requested is None
                        or requested["user_id"] == requester_id
                        or requested["status"] != SlotStatus.SWAPPABLE.value
                    ):
                        raise InvalidTarget()

                    parties = SwapParties(
                        request_id=0,
                        requested_slot_id=requested_slot_id,
                        offered_slot_id=offered_slot_id,
                        requester_id=requester_id,
                        owner_id=requested["user_id"],
                    )
                    parties.request_id = await self.db.execute(
                        swap_requests.insert().values(
                            requested_slot_id=parties.requested_slot_id,
                            offered_slot_id=parties.offered_slot_id,
                            requester_id=parties.requester_id,
                            owner_id=parties.owner_id,
                            status=SwapStatus.PENDING.value,
                        )
                    )
                    await self._set_slot_status([offered_slot_id, requested_slot_id], SlotStatus.SWAP_PENDING)
            except STORAGE_ERRORS as exc:
                logger.exception("Swap request from user %s failed, nothing was applied", requester_id)
                raise StorageError() from exc

        logger.info(
            "Swap request %s created: user %s offers slot %s for slot %s of user %s",
            parties.request_id, requester_id, offered_slot_id, requested_slot_id, parties.owner_id,
        )
        return parties

    async def respond(self, responder_id: int, request_id: int, accept: bool) -> SwapParties:
        """Accepts or rejects a pending request. Only the owner of the requested slot may respond."""
        async with self.lock:
            try:
                async with self.db.transaction():
                    query = (
                        swap_requests.select()
                        .where(
                            swap_requests.c.id == request_id,
                            swap_requests.c.owner_id == responder_id,
                            swap_requests.c.status == SwapStatus.PENDING.value,
                        )
                        .with_for_update()
                    )
                    record = await self.db.fetch_one(query)
                    if record is None:
                        raise NotFoundOrForbidden("Swap request not found or you are not the owner.")

                    parties = SwapParties.from_record(record)
                    if accept:
                        await self._accept(parties)
                    else:
                        await self._reject(parties)
            except STORAGE_ERRORS as exc:
                logger.exception("Response to swap request %s failed, nothing was applied", request_id)
                raise StorageError() from exc

        logger.info("Swap request %s %s by user %s", request_id, parties.status.value.lower(), responder_id)
        return parties

    async def list_requests(self, user_id: int) -> Dict[str, List[SwapRequestView]]:
        """Pending requests addressed to the user (incoming) and made by the user (outgoing)."""
        incoming = await self.db.fetch_all(self._pending_query(swap_requests.c.owner_id, swap_requests.c.requester_id, user_id))
        outgoing = await self.db.fetch_all(self._pending_query(swap_requests.c.requester_id, swap_requests.c.owner_id, user_id))
        return {
            "incoming": [IncomingRequest(requester_name=row["counterpart_name"], **self._view_fields(row)) for row in incoming],
            "outgoing": [OutgoingRequest(owner_name=row["counterpart_name"], **self._view_fields(row)) for row in outgoing],
        }

    async def _accept(self, parties: SwapParties):
        await self._set_request_status(parties.request_id, SwapStatus.ACCEPTED)
        # Each side takes the other's slot. Neither goes back on the market.
        await self.db.execute(
            events.update()
            .where(events.c.id == parties.requested_slot_id)
            .values(user_id=parties.requester_id, status=SlotStatus.BUSY.value)
        )
        await self.db.execute(
            events.update()
            .where(events.c.id == parties.offered_slot_id)
            .values(user_id=parties.owner_id, status=SlotStatus.BUSY.value)
        )
        parties.status = SwapStatus.ACCEPTED

    async def _reject(self, parties: SwapParties):
        await self._set_request_status(parties.request_id, SwapStatus.REJECTED)
        await self._set_slot_status([parties.requested_slot_id, parties.offered_slot_id], SlotStatus.SWAPPABLE)
        parties.status = SwapStatus.REJECTED

    async def _fetch_slot(self, slot_id: int):
        return await self.db.fetch_one(events.select().where(events.c.id == slot_id).with_for_update())

    async def _set_slot_status(self, slot_ids: Iterable[int], new_status: SlotStatus):
        condition = sqlalchemy.or_(*(events.c.id == slot_id for slot_id in slot_ids))
        await self.db.execute(events.update().where(condition).values(status=new_status.value))

    async def _set_request_status(self, request_id: int, new_status: SwapStatus):
        await self.db.execute(
            swap_requests.update().where(swap_requests.c.id == request_id).values(status=new_status.value)
        )

    @staticmethod
    def _pending_query(user_column, counterpart_column, user_id: int):
        requested_slot = events.alias("requested_slot")
        offered_slot = events.alias("offered_slot")
        counterpart = users.alias("counterpart")
        return sqlalchemy.select(
            swap_requests.c.id,
            swap_requests.c.status,
            requested_slot.c.title.label("requested_slot_title"),
            requested_slot.c.start_time.label("requested_slot_start"),
            offered_slot.c.title.label("offered_slot_title"),
            offered_slot.c.start_time.label("offered_slot_start"),
            counterpart.c.name.label("counterpart_name"),
        ).select_from(
            swap_requests
            .join(requested_slot, swap_requests.c.requested_slot_id == requested_slot.c.id)
            .join(offered_slot, swap_requests.c.offered_slot_id == offered_slot.c.id)
            .join(counterpart, counterpart_column == counterpart.c.id)
        ).where(
            user_column == user_id,
            swap_requests.c.status == SwapStatus.PENDING.value,
        ).order_by(swap_requests.c.id)

    @staticmethod
    def _view_fields(row) -> dict:
        return {
            "id": row["id"],
            "status": row["status"],
            "requested_slot_title": row["requested_slot_title"],
            "requested_slot_start": row["requested_slot_start"],
            "offered_slot_title": row["offered_slot_title"],
            "offered_slot_start": row["offered_slot_start"],
        }


negotiator = SwapNegotiationEngine()
