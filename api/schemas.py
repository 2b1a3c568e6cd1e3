from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class MovieIn(BaseModel):
    title: str = Field(min_length=1)
    description: str
    release_date: date
    duration: int = Field(gt=0)
    rating: float = Field(default=0, ge=0, le=10)
    genre: list[str] = Field(min_length=1)
    director: str
    cast: list[str] = []
    poster_url: str
    imdb_id: Optional[str] = None


class MovieUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    release_date: Optional[date] = None
    duration: Optional[int] = Field(default=None, gt=0)
    rating: Optional[float] = Field(default=None, ge=0, le=10)
    genre: Optional[list[str]] = None
    director: Optional[str] = None
    cast: Optional[list[str]] = None
    poster_url: Optional[str] = None
    imdb_id: Optional[str] = None


class MovieBatch(BaseModel):
    movies: list[MovieIn]


class InteractionMetadata(BaseModel):
    watch_time: Optional[float] = None
    scroll_depth: Optional[float] = None
    device_type: Optional[str] = None


class InteractionIn(BaseModel):
    # checked against the allowed types in the route so bad values get a 400
    interaction_type: str
    metadata: InteractionMetadata = InteractionMetadata()


EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value):
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password cannot exceed 72 bytes")
        return value


class LoginIn(BaseModel):
    email: str
    password: str


class Identity(BaseModel):
    user_id: str
    role: Literal["user", "admin"] = "user"
    username: Optional[str] = None
    email: Optional[str] = None


class QueueStatus(BaseModel):
    queue_length: int
    processing: bool
    batch_size: int
