# database.py
import asyncio
import sqlite3

from databases import Database
from sqlalchemy import create_engine, MetaData
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from slot_swapper.config import DATABASE_URL

# Create the core database objects
database = Database(DATABASE_URL)
metadata = MetaData()

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

# Serializes every read-check-write on slot status within this process,
# on top of the transaction and row locks taken by each mutation.
write_lock = asyncio.Lock()

# Driver level failures surfaced by `databases` for the backends we run on
STORAGE_ERRORS = (SQLAlchemyError, sqlite3.Error)
INTEGRITY_ERRORS = (IntegrityError, sqlite3.IntegrityError)
