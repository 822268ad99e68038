# auth.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from slot_swapper.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from slot_swapper.database import database, INTEGRITY_ERRORS
from slot_swapper.errors import AuthError, DuplicateEmail, InvalidCredentials
from slot_swapper.models import users

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Missing tokens reach verify() as None
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/login", auto_error=False)


# Pydantic Models
class User(BaseModel):
    id: int
    name: str
    email: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)

class LoginRequest(BaseModel):
    email: str
    password: str


async def get_user_by_email(email: str):
    query = users.select().where(users.c.email == email)
    return await database.fetch_one(query)

async def get_user_by_id(user_id: int):
    query = users.select().where(users.c.id == user_id)
    return await database.fetch_one(query)

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def _token_for(user_id: int, email: str) -> Token:
    return Token(access_token=create_access_token({"sub": str(user_id), "email": email}))


async def register(user: UserCreate) -> Token:
    """Creates the user and returns a credential for them. Only the password hash is stored."""
    if await get_user_by_email(user.email):
        raise DuplicateEmail()

    query = users.insert().values(
        name=user.name,
        email=user.email,
        hashed_password=pwd_context.hash(user.password),
    )
    try:
        user_id = await database.execute(query)
    except INTEGRITY_ERRORS as exc:
        # Lost a race with a concurrent signup for the same address
        raise DuplicateEmail() from exc

    logger.info("Registered user %s", user_id)
    return _token_for(user_id, user.email)


async def authenticate(email: str, password: str) -> Token:
    user_record = await get_user_by_email(email)
    if not user_record or not verify_password(password, user_record["hashed_password"]):
        logger.warning("Failed login attempt")
        raise InvalidCredentials()
    return _token_for(user_record["id"], user_record["email"])


async def verify(token: Optional[str]) -> User:
    """Decodes a bearer token and loads the user it names. Expired tokens are rejected."""
    if token is None:
        raise AuthError("Not authenticated")

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise AuthError()

    user_record = await get_user_by_id(user_id)
    if user_record is None:
        raise AuthError()

    return User(id=user_record["id"], name=user_record["name"], email=user_record["email"])


# Used for API calls made by the client
async def get_current_active_user(token: Optional[str] = Depends(oauth2_scheme)) -> User:
    return await verify(token)
