# data_models.py
from dataclasses import dataclass
from enum import Enum


class SlotStatus(str, Enum):
    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    SWAP_PENDING = "SWAP_PENDING"


# Statuses an owner may set directly; SWAP_PENDING is only reached through a swap request.
OWNER_SETTABLE_STATUSES = {SlotStatus.BUSY, SlotStatus.SWAPPABLE}


class SwapStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass
class SwapParties:
    """The two slots and two users linked by a single swap request."""
    request_id: int
    requested_slot_id: int
    offered_slot_id: int
    requester_id: int
    owner_id: int
    status: SwapStatus = SwapStatus.PENDING

    @classmethod
    def from_record(cls, record) -> "SwapParties":
        return cls(
            request_id=record["id"],
            requested_slot_id=record["requested_slot_id"],
            offered_slot_id=record["offered_slot_id"],
            requester_id=record["requester_id"],
            owner_id=record["owner_id"],
            status=SwapStatus(record["status"]),
        )
