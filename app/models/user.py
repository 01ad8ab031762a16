from datetime import UTC, datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel


def new_sharable_id() -> str:
    return str(uuid4())


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    name: str
    timezone: str  # fixed UTC offset, e.g. "+05:30"


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str
    # Public handle for the provider's calendar; rotating it invalidates old links
    sharable_id: str = Field(default_factory=new_sharable_id, unique=True, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)


class UserCreate(SQLModel):
    email: str
    password: str
    name: str
    timezone: str


class UserPublic(SQLModel):
    id: int
    email: str
    name: str
    sharable_id: str
    timezone: str
