"""File-backed anomaly store with a rebuildable cross-session index.

Layout under ``base_dir``::

    .research/anomalies/<session>-anomalies.json   authoritative, one per session
    .research/anomaly-index.json                    derived, rebuildable

Writes to one session are serialized by a per-session asyncio lock so each
read-modify-write observes the previous writer's result. Every file is
replaced wholesale; nothing is edited in place. Rebuilding the index only
reads session files and never takes a session lock.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from brenner.errors import AnomalyValidationError, StorageCorruptionError
from brenner.lib import fs, paths, times
from brenner.lib.locks import KeyedLock
from brenner.models import (
    QUARANTINE_STATUSES,
    Anomaly,
    AnomalyIndex,
    AnomalyIndexEntry,
    AnomalyStatistics,
    IndexWarning,
)

from . import schema

logger = logging.getLogger(__name__)

INDEX_VERSION = 1
SESSION_SUFFIX = "-anomalies.json"


class AnomalyStorage:
    def __init__(self, base_dir: Path | str, auto_rebuild_index: bool = True):
        self.base_dir = Path(base_dir)
        self.auto_rebuild_index = auto_rebuild_index
        self._session_locks = KeyedLock()
        self._index_lock = asyncio.Lock()

    # -- paths ---------------------------------------------------------------

    def session_path(self, session_id: str) -> Path:
        if not schema.is_valid_session_id(session_id):
            raise AnomalyValidationError(f"invalid session id {session_id!r}")
        return paths.anomaly_session_file(self.base_dir, session_id)

    @property
    def index_path(self) -> Path:
        return paths.anomaly_index_file(self.base_dir)

    # -- session files ---------------------------------------------------------

    def _read_session(self, path: Path) -> dict[str, Any] | None:
        """Parsed session file, None when missing. Raises StorageCorruptionError."""
        data = fs.read_json(path)
        if data is None:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("anomalies"), list):
            raise StorageCorruptionError(path, "expected an object with an 'anomalies' list")
        try:
            data["anomalies"] = [Anomaly.from_dict(a) for a in data["anomalies"]]
        except (KeyError, TypeError, AttributeError) as e:
            raise StorageCorruptionError(path, f"malformed anomaly record: {e!r}") from e
        return data

    def _write_session(
        self, session_id: str, anomalies: list[Anomaly], created_at: str | None
    ) -> None:
        now = times.now_iso()
        fs.write_json_atomic(
            self.session_path(session_id),
            {
                "sessionId": session_id,
                "createdAt": created_at or now,
                "updatedAt": now,
                "anomalies": [a.to_dict() for a in anomalies],
            },
        )

    async def load_session_anomalies(self, session_id: str) -> list[Anomaly]:
        """Anomalies stored for a session. Missing or corrupt files give []."""
        path = self.session_path(session_id)
        try:
            data = await asyncio.to_thread(self._read_session, path)
        except StorageCorruptionError as e:
            logger.warning(f"Treating corrupt session file as empty: {e}")
            return []
        return data["anomalies"] if data else []

    async def _modify_session(
        self, session_id: str, change: Callable[[list[Anomaly]], list[Anomaly] | None]
    ) -> list[Anomaly] | None:
        """Serialized read-modify-write. ``change`` returns None to skip the write."""
        path = self.session_path(session_id)
        async with self._session_locks.hold(session_id):
            data = await asyncio.to_thread(self._read_session, path)
            current = data["anomalies"] if data else []
            updated = change(list(current))
            if updated is None:
                return None
            created_at = data.get("createdAt") if data else None
            await asyncio.to_thread(self._write_session, session_id, updated, created_at)
        await self._after_write()
        return updated

    async def save_anomaly(self, anomaly: Anomaly) -> Anomaly:
        """Upsert by id within the anomaly's session file."""
        schema.validate_anomaly(anomaly)

        def upsert(current: list[Anomaly]) -> list[Anomaly]:
            for i, existing in enumerate(current):
                if existing.id == anomaly.id:
                    current[i] = anomaly
                    return current
            return [*current, anomaly]

        await self._modify_session(anomaly.session_id, upsert)
        logger.debug(f"Saved anomaly {anomaly.id}")
        return anomaly

    async def save_session_anomalies(self, session_id: str, anomalies: list[Anomaly]) -> None:
        """Replace a session's anomalies, keeping the file's original createdAt."""
        for anomaly in anomalies:
            schema.validate_anomaly(anomaly)
            if anomaly.session_id != session_id:
                raise AnomalyValidationError(f"{anomaly.id} belongs to session {anomaly.session_id}, not {session_id}")
        await self._modify_session(session_id, lambda _: list(anomalies))

    async def get_anomaly_by_id(self, anomaly_id: str) -> Anomaly | None:
        session_id = schema.session_of(anomaly_id)
        if session_id is None:
            return None
        for anomaly in await self.load_session_anomalies(session_id):
            if anomaly.id == anomaly_id:
                return anomaly
        return None

    async def delete_anomaly(self, anomaly_id: str) -> bool:
        session_id = schema.session_of(anomaly_id)
        if session_id is None or not self.session_path(session_id).exists():
            return False

        def remove(current: list[Anomaly]) -> list[Anomaly] | None:
            remaining = [a for a in current if a.id != anomaly_id]
            return remaining if len(remaining) != len(current) else None

        try:
            deleted = await self._modify_session(session_id, remove) is not None
        except StorageCorruptionError as e:
            logger.warning(f"Cannot delete {anomaly_id}: {e}")
            return False
        if deleted:
            logger.info(f"Deleted anomaly {anomaly_id}")
        return deleted

    # -- index -------------------------------------------------------------------

    async def _after_write(self) -> None:
        if self.auto_rebuild_index:
            await self.rebuild_index()
        else:
            # Under the index lock so an in-flight rebuild cannot land after the unlink.
            async with self._index_lock:
                await asyncio.to_thread(self.index_path.unlink, True)

    def _session_files(self) -> list[Path]:
        directory = paths.anomalies_dir(self.base_dir)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.iterdir() if p.is_file() and p.name.endswith(SESSION_SUFFIX))

    def _scan(self) -> AnomalyIndex:
        entries: list[AnomalyIndexEntry] = []
        warnings: list[IndexWarning] = []
        for path in self._session_files():
            try:
                data = self._read_session(path)
            except StorageCorruptionError as e:
                logger.warning(f"Skipping unreadable session file: {e}")
                warnings.append(IndexWarning(file=str(path), error=e.detail))
                continue
            if data:
                entries.extend(AnomalyIndexEntry.from_anomaly(a) for a in data["anomalies"])
        return AnomalyIndex(version=INDEX_VERSION, updated_at=times.now_iso(), entries=entries, warnings=warnings)

    async def rebuild_index(self) -> AnomalyIndex:
        """Rescan every session file and rewrite the index."""
        async with self._index_lock:
            index = await asyncio.to_thread(self._scan)
            await asyncio.to_thread(fs.write_json_atomic, self.index_path, index.to_dict())
        logger.debug(f"Rebuilt anomaly index: {len(index.entries)} entries, {len(index.warnings)} warnings")
        return index

    async def load_index(self) -> AnomalyIndex:
        """Cached index; rebuilt transparently when missing or unreadable."""
        try:
            data = await asyncio.to_thread(fs.read_json, self.index_path)
            if data is not None:
                return AnomalyIndex.from_dict(data)
        except StorageCorruptionError as e:
            logger.warning(f"Rebuilding corrupt anomaly index: {e}")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Rebuilding malformed anomaly index: {e!r}")
        return await self.rebuild_index()

    # -- queries ---------------------------------------------------------------

    async def _matching(self, predicate: Callable[[AnomalyIndexEntry], bool]) -> list[Anomaly]:
        index = await self.load_index()
        wanted: dict[str, set[str]] = {}
        for entry in index.entries:
            if predicate(entry):
                wanted.setdefault(entry.session_id, set()).add(entry.id)

        found = []
        for session_id in sorted(wanted):
            found.extend(a for a in await self.load_session_anomalies(session_id) if a.id in wanted[session_id])
        return found

    async def get_anomalies_by_status(self, status: str) -> list[Anomaly]:
        if status not in QUARANTINE_STATUSES:
            raise AnomalyValidationError(f"unknown quarantine status {status!r}")
        return await self._matching(lambda e: e.quarantine_status == status)

    async def get_active_anomalies(self) -> list[Anomaly]:
        return await self.get_anomalies_by_status("active")

    async def get_anomalies_for_hypothesis(self, hypothesis_id: str) -> list[Anomaly]:
        return await self._matching(lambda e: hypothesis_id in e.conflicts_with_hypotheses)

    async def get_anomalies_for_assumption(self, assumption_id: str) -> list[Anomaly]:
        return await self._matching(lambda e: assumption_id in e.conflicts_with_assumptions)

    async def get_anomalies_with_spawned_hypotheses(self) -> list[Anomaly]:
        return await self._matching(lambda e: bool(e.spawned_hypotheses))

    async def get_anomaly_that_spawned(self, hypothesis_id: str) -> Anomaly | None:
        matches = await self._matching(lambda e: hypothesis_id in e.spawned_hypotheses)
        return matches[0] if matches else None

    async def get_all_anomalies(self) -> list[Anomaly]:
        return await self._matching(lambda e: True)

    async def list_sessions(self) -> list[str]:
        index = await self.load_index()
        return sorted({e.session_id for e in index.entries})

    async def get_statistics(self) -> AnomalyStatistics:
        index = await self.load_index()
        by_status = dict.fromkeys(QUARANTINE_STATUSES, 0)
        for entry in index.entries:
            by_status[entry.quarantine_status] = by_status.get(entry.quarantine_status, 0) + 1
        return AnomalyStatistics(
            total=len(index.entries),
            by_status=by_status,
            with_spawned_hypotheses=sum(1 for e in index.entries if e.spawned_hypotheses),
            sessions_with_anomalies=len({e.session_id for e in index.entries}),
        )
