"""Файловое хранилище предложений (один JSON-файл).

Транзакция работает с копией всего хранилища и фиксируется записью
временного файла с последующим атомарным переименованием, поэтому
частично примененные изменения никогда не попадают на диск.
Читающие транзакции не берут блокировку и не копируют состояние.
"""
import asyncio
import copy
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from app.core.errors import DuplicateVersionError
from app.db.repositories.base import (
    OfferRepositoryBase, OfferStorage, OfferVersionRepositoryBase, UnitOfWork
)
from app.domains.offers.entities import Offer, OfferSnapshot, OfferVersion

logger = logging.getLogger(__name__)

State = Dict[str, Any]

OFFER_FIELDS = (
    "id", "owner_id", "title", "content", "status", "current_version",
    "total_versions", "etag", "created_at", "updated_at", "last_modified_by",
    "is_published", "published_version", "published_at", "public_url",
    "has_unpublished_changes",
)
VERSION_FIELDS = (
    "id", "offer_id", "version_number", "title", "content", "status",
    "change_type", "description", "created_at", "created_by", "is_published",
)
DATETIME_FIELDS = {"created_at", "updated_at", "published_at"}

ORDER_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
}


def _empty_state() -> State:
    return {"offers": {}, "versions": []}


def _dump(entity: Any, fields: Tuple[str, ...]) -> Dict[str, Any]:
    data = {}
    for name in fields:
        value = getattr(entity, name)
        if name in DATETIME_FIELDS and value is not None:
            value = value.isoformat(timespec="microseconds")
        data[name] = copy.deepcopy(value)
    return data


def _load(data: Dict[str, Any], fields: Tuple[str, ...]) -> Dict[str, Any]:
    kwargs = {}
    for name in fields:
        value = copy.deepcopy(data.get(name))
        if name in DATETIME_FIELDS and value is not None:
            value = datetime.fromisoformat(value)
        kwargs[name] = value
    return kwargs


class FileOfferRepository(OfferRepositoryBase):
    def __init__(self, uow: "FileUnitOfWork"):
        self.uow = uow

    @property
    def _offers(self) -> Dict[str, Dict[str, Any]]:
        return self.uow.state["offers"]

    async def add(self, offer: Offer) -> Offer:
        self.uow.mark_dirty()
        self._offers[offer.id] = _dump(offer, OFFER_FIELDS)
        return offer

    async def get(self, offer_id: str, for_update: bool = False) -> Optional[Offer]:
        # for_update не нужен: пишущая транзакция выполняется под блокировкой хранилища
        data = self._offers.get(offer_id)
        return Offer(**_load(data, OFFER_FIELDS)) if data else None

    async def list_by_owner(
        self,
        owner_id: str,
        status: Optional[str],
        limit: int,
        offset: int,
        order_by: str,
        order: str,
    ) -> Tuple[List[Offer], int]:
        rows = [
            row for row in self._offers.values()
            if row["owner_id"] == owner_id and (not status or row["status"] == status)
        ]
        key = ORDER_FIELDS[order_by]
        rows.sort(key=lambda row: row["id"])
        rows.sort(key=lambda row: row[key], reverse=(order == "desc"))

        page = rows[offset:offset + limit]
        return [Offer(**_load(row, OFFER_FIELDS)) for row in page], len(rows)

    async def save(self, offer: Offer, expected: Offer) -> bool:
        current = self._offers.get(offer.id)
        if (
            current is None
            or current["etag"] != expected.etag
            or current["current_version"] != expected.current_version
            or current["total_versions"] != expected.total_versions
        ):
            return False

        self.uow.mark_dirty()
        self._offers[offer.id] = _dump(offer, OFFER_FIELDS)
        return True

    async def delete(self, offer_id: str, owner_id: str) -> bool:
        current = self._offers.get(offer_id)
        if current is None or current["owner_id"] != owner_id:
            return False

        self.uow.mark_dirty()
        del self._offers[offer_id]
        return True


class FileOfferVersionRepository(OfferVersionRepositoryBase):
    def __init__(self, uow: "FileUnitOfWork"):
        self.uow = uow

    @property
    def _versions(self) -> List[Dict[str, Any]]:
        return self.uow.state["versions"]

    def _find(self, offer_id: str, version_number: int) -> Optional[Dict[str, Any]]:
        for row in self._versions:
            if row["offer_id"] == offer_id and row["version_number"] == version_number:
                return row
        return None

    async def add(self, version: OfferVersion) -> OfferVersion:
        if self._find(version.offer_id, version.version_number) is not None:
            raise DuplicateVersionError(version.offer_id, version.version_number)

        self.uow.mark_dirty()
        self._versions.append(_dump(version, VERSION_FIELDS))
        return version

    async def get(self, offer_id: str, version_number: int) -> Optional[OfferVersion]:
        row = self._find(offer_id, version_number)
        return OfferVersion(**_load(row, VERSION_FIELDS)) if row else None

    async def list(self, offer_id: str) -> List[OfferVersion]:
        rows = [row for row in self._versions if row["offer_id"] == offer_id]
        rows.sort(key=lambda row: (row["created_at"], row["version_number"]), reverse=True)
        return [OfferVersion(**_load(row, VERSION_FIELDS)) for row in rows]

    async def replace_snapshot(self, offer_id: str, version_number: int, snapshot: OfferSnapshot) -> bool:
        row = self._find(offer_id, version_number)
        if row is None:
            return False

        self.uow.mark_dirty()
        row.update(
            title=snapshot.title,
            content=copy.deepcopy(snapshot.content),
            status=snapshot.status,
        )
        return True

    async def set_published(self, offer_id: str, version_number: int, published: bool) -> bool:
        target = self._find(offer_id, version_number)
        if target is None:
            return False

        self.uow.mark_dirty()
        if published:
            for row in self._versions:
                if row["offer_id"] == offer_id and row is not target and row["is_published"]:
                    row["is_published"] = False

        target["is_published"] = published
        return True

    async def delete_all(self, offer_id: str) -> int:
        kept = [row for row in self._versions if row["offer_id"] != offer_id]
        removed = len(self._versions) - len(kept)
        if removed:
            self.uow.mark_dirty()
            self.uow.state["versions"] = kept
        return removed


class FileUnitOfWork(UnitOfWork):
    def __init__(self, state: State, read_only: bool = False):
        self.state = state
        self.read_only = read_only
        self.dirty = False
        self.offers = FileOfferRepository(self)
        self.versions = FileOfferVersionRepository(self)

    def mark_dirty(self) -> None:
        # Вызывается до изменения: читающая транзакция видит общее состояние
        if self.read_only:
            raise RuntimeError("Write attempted in a read-only transaction")
        self.dirty = True


class FileOfferStorage(OfferStorage):
    """Хранилище в JSON-файле с копированием при записи"""

    def __init__(self, path: str):
        self.path = Path(path)
        self._state: State = _empty_state()
        # Эмулирует сериализуемую транзакцию СУБД: одна пишущая транзакция за раз
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        self._state = await asyncio.to_thread(self._read)
        logger.info(
            f"Loaded {len(self._state['offers'])} offers and "
            f"{len(self._state['versions'])} versions from {self.path}"
        )

    async def close(self) -> None:
        return None

    @asynccontextmanager
    async def transaction(self, read_only: bool = False) -> AsyncIterator[FileUnitOfWork]:
        if read_only:
            # Зафиксированное состояние не изменяется, а заменяется целиком
            yield FileUnitOfWork(self._state, read_only=True)
            return

        async with self._lock:
            uow = FileUnitOfWork(copy.deepcopy(self._state))
            yield uow
            # Сюда попадаем только без исключения: иначе копия просто отбрасывается
            if uow.dirty:
                await asyncio.to_thread(self._write, uow.state)
                self._state = uow.state
                logger.debug(f"Committed {len(self._state['offers'])} offers to {self.path}")

    async def health_check(self) -> dict:
        return {
            "backend": "file",
            "connected": self.path.parent.exists(),
            "path": str(self.path),
            "offers": len(self._state["offers"]),
        }

    def _read(self) -> State:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            logger.info(f"No existing data file at {self.path}, starting with empty storage")
            return _empty_state()

        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)

        return {
            "offers": data.get("offers") or {},
            "versions": data.get("versions") or [],
        }

    def _write(self, state: State) -> None:
        payload = {
            "offers": state["offers"],
            "versions": state["versions"],
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".offers-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            with suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
