# storefront/services/slot_store.py
from __future__ import annotations

import asyncio
from typing import Protocol

import redis
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from storefront.data.database import Base, make_engine, make_sessionmaker
from storefront.data.models import SlotModel  # noqa: F401  rejestracja w metadata
from storefront.repos.slot_repo import SlotRepo
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, SLOT_BACKEND

logger = get_logger(__name__)

#bledy backendu slotow, nie przerywaja operacji na koszyku
STORAGE_ERRORS = (redis.RedisError, SQLAlchemyError, OSError)


class SlotStore(Protocol):
    """Trwale sloty klucz-wartosc, wartosci to serializowany JSON albo surowy token."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySlotStore:
    def __init__(self) -> None:
        self._slots: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._slots.get(key)

    def write(self, key: str, value: str) -> None:
        self._slots[key] = value

    def delete(self, key: str) -> None:
        self._slots.pop(key, None)


class SqlSlotStore:
    """Sloty w tabeli kv_slots (domyslnie lokalny plik sqlite)."""

    def __init__(self, url: str | None = None, engine: Engine | None = None):
        self.engine = engine or make_engine(url)
        Base.metadata.create_all(bind=self.engine)
        self._session_factory = make_sessionmaker(self.engine)

    def read(self, key: str) -> str | None:
        with self._session_factory() as db:
            slot = SlotRepo(db).get_slot(key)
            return slot.value if slot else None

    def write(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            SlotRepo(db).put_slot(key, value)

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            SlotRepo(db).delete_slot(key)


class RedisSlotStore:
    """
    -sloty jako zwykle klucze redis bez TTL
    -prefiks odseparowuje instalacje korzystajace z tej samej bazy
    """

    def __init__(self, url: str | None = None, prefix: str = "storefront:slot:", client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.prefix = prefix

    @redis_retry()
    def read(self, key: str) -> str | None:
        return self.redis.get(f"{self.prefix}{key}")

    @redis_retry()
    def write(self, key: str, value: str) -> None:
        self.redis.set(name=f"{self.prefix}{key}", value=value)

    @redis_retry()
    def delete(self, key: str) -> None:
        self.redis.delete(f"{self.prefix}{key}")


def get_slot_store(backend: str | None = None) -> SlotStore:
    """Wybor backendu slotow na podstawie SLOT_BACKEND (memory, sql, redis)."""

    mode = (backend or SLOT_BACKEND).strip().lower()
    logger.info(f"Using {mode} slot store")

    if mode == "memory":
        return MemorySlotStore()
    if mode == "sql":
        return SqlSlotStore()
    if mode == "redis":
        return RedisSlotStore()

    raise ValueError(f"Unknown SLOT_BACKEND={mode!r}. Expected memory, sql or redis.")


# =====================================================
# ASYNC ACCESS
# =====================================================
# sqlite commit i retry redisa (time.sleep) blokuja, wiec zawsze w watku obok petli zdarzen


async def read_slot(slots: SlotStore, key: str) -> str | None:
    try:
        return await asyncio.to_thread(slots.read, key)
    except STORAGE_ERRORS as e:
        logger.error(f"Slot {key} read failed: {e}")
        return None


async def write_slot(slots: SlotStore, key: str, value: str) -> bool:
    try:
        await asyncio.to_thread(slots.write, key, value)
    except STORAGE_ERRORS as e:
        logger.error(f"Slot {key} write failed: {e}")
        return False
    return True


async def delete_slot(slots: SlotStore, key: str) -> bool:
    try:
        await asyncio.to_thread(slots.delete, key)
    except STORAGE_ERRORS as e:
        logger.error(f"Slot {key} delete failed: {e}")
        return False
    return True
