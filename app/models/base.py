"""
Base Model Mixins
"""
from sqlalchemy import Column, DateTime, Uuid
from datetime import datetime, timezone
from typing import Optional
import random
import string
import time
import uuid


def utcnow() -> datetime:
    """Naive UTC timestamp (what the DateTime columns store)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_reference(prefix: str) -> str:
    """Human readable id like DRG-LX3K9Z2A-7QF2 (base36 ms timestamp + 4 random chars)"""
    alphabet = string.digits + string.ascii_uppercase
    millis = int(time.time() * 1000)
    stamp = ""
    while millis:
        millis, rem = divmod(millis, 36)
        stamp = alphabet[rem] + stamp
    suffix = "".join(random.choices(alphabet, k=4))
    return f"{prefix}-{stamp}-{suffix}"


class UUIDMixin:
    """Mixin for UUID primary key"""
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an incoming datetime to the naive UTC form stored in the DB"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
