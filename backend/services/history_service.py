# ========================================
# services/history_service.py - Completed interview history
# ========================================

import os
from datetime import date, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from config import Settings, get_settings
from models.interview import InterviewSession
from utils.errors import StorageError
from utils.logger import get_logger
from utils.redis_client import get_redis, test_connection

logger = get_logger("SessionStore")

_history = TypeAdapter(List[InterviewSession])


class KeyValueSlot(Protocol):
    """A single durable string value under a fixed key."""

    async def read(self) -> Optional[str]: ...

    async def write(self, blob: str) -> None: ...


class FileSlot:
    def __init__(self, directory: Path, key: str):
        self.path = Path(directory).expanduser() / f"{key}.json"

    async def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    async def write(self, blob: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(blob, encoding="utf-8")
        os.replace(tmp, self.path)


class RedisSlot:
    def __init__(self, key: str, client=None):
        self.key = key
        self.client = client if client is not None else get_redis()

    async def read(self) -> Optional[str]:
        return await self.client.get(self.key)

    async def write(self, blob: str) -> None:
        await self.client.set(self.key, blob)


class SessionStore:
    """Upsert/lookup over one serialized list of completed sessions.

    History is best-effort: an unreadable medium reads as empty, and a failed
    write is logged and reported as ``False`` instead of raising. A write never
    goes ahead over history that could not be read.
    """

    def __init__(self, slot: KeyValueSlot):
        self.slot = slot

    async def _load(self) -> List[InterviewSession]:
        raw = await self.slot.read()
        if not raw:
            return []
        return _history.validate_json(raw)

    async def get_all(self) -> List[InterviewSession]:
        try:
            return await self._load()
        except PydanticValidationError as e:
            logger.warning(f"Failed to parse interview history, treating as empty: {e.error_count()} error(s)")
        except Exception as e:
            logger.warning(f"Failed to read interview history: {e}")
        return []

    async def get_by_id(self, session_id: str) -> Optional[InterviewSession]:
        for session in await self.get_all():
            if session.id == session_id:
                return session
        return None

    async def upsert(self, session: InterviewSession) -> bool:
        """Replace or append ``session``. Nothing is written unless the stored history was read intact."""
        try:
            history = await self._load()
            for i, existing in enumerate(history):
                if existing.id == session.id:
                    history[i] = session
                    break
            else:
                history.append(session)
            blob = _history.dump_json(history, by_alias=True, exclude_none=True).decode("utf-8")
            await self.slot.write(blob)
        except Exception as e:
            err = StorageError("Failed to save session to history.", detail=str(e))
            logger.error(f"{err.message} session={session.id}", exc_info=True)
            return False

        logger.info(f"Session {session.id} saved to history ({len(history)} total).")
        return True


def filter_history(
    sessions: List[InterviewSession],
    job_role: Optional[str] = None,
    on_date: Optional[date] = None,
) -> List[InterviewSession]:
    """History view helper: exact-role and calendar-day (UTC) filters, newest first."""
    selected = [
        s for s in sessions
        if (not job_role or s.job_role == job_role)
        and (on_date is None or s.created_at.astimezone(timezone.utc).date() == on_date)
    ]
    return sorted(selected, key=lambda s: s.created_at, reverse=True)


def build_session_store(settings: Optional[Settings] = None, client=None) -> SessionStore:
    settings = settings or get_settings()
    if settings.history_backend.lower() == "redis":
        logger.info(f"Using redis history at key '{settings.history_key}'")
        return SessionStore(RedisSlot(settings.history_key, client=client))
    return SessionStore(FileSlot(settings.history_dir, settings.history_key))


async def open_session_store(settings: Optional[Settings] = None, client=None) -> SessionStore:
    """Build the configured store and, for redis, check the server answers.

    An unreachable server is only a warning: reads then come back empty and
    saves report failure, as for any unavailable medium.
    """
    store = build_session_store(settings, client=client)
    if isinstance(store.slot, RedisSlot) and not await test_connection(store.slot.client):
        logger.warning("Redis is unreachable; interview history will not be saved this run")
    return store
