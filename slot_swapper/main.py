# main.py
import logging
from datetime import datetime
from typing import Dict, List

import fastapi
from fastapi import Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from slot_swapper import auth, slots
from slot_swapper.auth import User, Token, UserCreate, LoginRequest, get_current_active_user
from slot_swapper.config import CORS_ORIGINS, LOG_LEVEL
from slot_swapper.data_models import SwapStatus
from slot_swapper.database import database, engine, metadata, STORAGE_ERRORS
from slot_swapper.errors import StorageError
from slot_swapper.slots import Slot, SwappableSlot
from slot_swapper.swaps import IncomingRequest, OutgoingRequest, negotiator

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


#FastAPI Setup
app = fastapi.FastAPI(title="SlotSwapper API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request bodies. Field names on the wire follow the client's camelCase.
class SlotCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")

class StatusUpdate(BaseModel):
    status: str

class SwapRequestCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    my_slot_id: int = Field(alias="mySlotId")
    their_slot_id: int = Field(alias="theirSlotId")

class SwapResponseBody(BaseModel):
    accept: bool

class RequestsOverview(BaseModel):
    incoming: List[IncomingRequest]
    outgoing: List[OutgoingRequest]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or incomplete bodies are a 400, like every other input error."""
    logger.info("Rejected invalid input for %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid input.", "errors": jsonable_errors(exc)},
    )

def jsonable_errors(exc: RequestValidationError) -> List[Dict]:
    return [{"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in exc.errors()]

async def storage_exception_handler(request: Request, exc: Exception):
    logger.error("Storage failure on %s: %s", request.url.path, exc)
    error = StorageError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})

for storage_error in STORAGE_ERRORS:
    app.add_exception_handler(storage_error, storage_exception_handler)


# Auth endpoints
@app.post("/api/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(user: UserCreate):
    return await auth.register(user)

@app.post("/api/login", response_model=Token)
async def login(credentials: LoginRequest):
    return await auth.authenticate(credentials.email, credentials.password)

@app.get("/api/users/me", response_model=User)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    """
    Get the current authenticated user's profile data.
    """
    return current_user


# Event (slot) endpoints
@app.get("/api/my-events", response_model=List[Slot])
async def my_events(current_user: User = Depends(get_current_active_user)):
    return await slots.list_slots(current_user.id)

@app.post("/api/events", response_model=Slot, status_code=status.HTTP_201_CREATED)
async def create_event(event: SlotCreate, current_user: User = Depends(get_current_active_user)):
    return await slots.create_slot(current_user.id, event.title, event.start_time, event.end_time)

@app.put("/api/events/{event_id}/status")
async def update_event_status(event_id: int, body: StatusUpdate, current_user: User = Depends(get_current_active_user)):
    slot = await slots.set_status(current_user.id, event_id, body.status)
    return {"message": "Status updated successfully", "status": slot.status}


# Swap endpoints
@app.get("/api/swappable-slots", response_model=List[SwappableSlot])
async def swappable_slots(current_user: User = Depends(get_current_active_user)):
    return await slots.list_swappable(current_user.id)

@app.post("/api/swap-request", status_code=status.HTTP_201_CREATED)
async def request_swap(body: SwapRequestCreate, current_user: User = Depends(get_current_active_user)):
    parties = await negotiator.create_request(current_user.id, body.my_slot_id, body.their_slot_id)
    return {"message": "Swap request created successfully.", "id": parties.request_id}

@app.get("/api/requests", response_model=RequestsOverview)
async def my_requests(current_user: User = Depends(get_current_active_user)):
    return await negotiator.list_requests(current_user.id)

@app.post("/api/swap-response/{request_id}")
async def respond_to_swap(request_id: int, body: SwapResponseBody, current_user: User = Depends(get_current_active_user)):
    parties = await negotiator.respond(current_user.id, request_id, body.accept)
    message = "Swap accepted!" if parties.status == SwapStatus.ACCEPTED else "Swap rejected."
    return {"message": message, "status": parties.status}


@app.on_event("startup")
async def startup():
    await database.connect()
    # Create tables if they don't exist
    metadata.create_all(bind=engine)
    logger.info("Connected to the database")

@app.on_event("shutdown")
async def shutdown():
    await database.disconnect()
