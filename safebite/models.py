# safebite/models.py
from typing import Optional, List
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Relationship
from uuid import uuid4
from sqlalchemy import Column, JSON, LargeBinary

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def _new_id() -> str:
    return uuid4().hex

class ImageStore(SQLModel, table=True):
    __tablename__ = "image_store"
    id: str = Field(default_factory=_new_id, primary_key=True)
    object_name: str = Field(index=True, unique=True)
    data: bytes = Field(sa_column=Column(LargeBinary))
    mime_type: str = Field(default="image/jpeg")
    created_at: datetime = Field(default_factory=utc_now)

class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profile"
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    allergic_foods: List[str] = Field(default=[], sa_column=Column(JSON))
    disliked_foods: List[str] = Field(default=[], sa_column=Column(JSON))
    preferred_foods: List[str] = Field(default=[], sa_column=Column(JSON))
    diet_type: Optional[str] = None
    health_conditions: List[str] = Field(default=[], sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    scans: List["Scan"] = Relationship(back_populates="user")

class Scan(SQLModel, table=True):
    __tablename__ = "scan"
    id: str = Field(default_factory=_new_id, primary_key=True)
    user_id: str = Field(foreign_key="user_profile.id", index=True)
    kind: str = Field(default="brand")  # meal | brand
    image_url: str
    status: str = Field(default="pending")  # pending | completed | failed
    result: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    model_latency: Optional[float] = None
    model_cost: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now)

    user: UserProfile = Relationship(back_populates="scans")
