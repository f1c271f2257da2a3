# infrastructure/storage/run_store.py
import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from domain.errors import RunStoreError
from domain.models.agent_task import as_utc
from domain.models.task_run import RunOutcome, TaskRun
from shared.logging import log_store_event


class RunStore(ABC):
    """Persistence for TaskRun audit records.

    Every listing is newest first by ``started_at``. Implementations wrap
    their own I/O errors in RunStoreError.
    """

    name = "abstract"

    @abstractmethod
    async def save(self, run: TaskRun) -> None:
        ...

    @abstractmethod
    async def load(self, run_id: str) -> Optional[TaskRun]:
        ...

    @abstractmethod
    async def list_for_project(self, project_path: str, limit: Optional[int] = None) -> List[TaskRun]:
        ...

    @abstractmethod
    async def list_recent(self, limit: int = 20) -> List[TaskRun]:
        ...

    @abstractmethod
    async def list_by_outcome(self, outcome: RunOutcome, limit: Optional[int] = None) -> List[TaskRun]:
        ...

    @abstractmethod
    async def delete(self, run_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Remove runs started before ``cutoff``; a naive cutoff is read as UTC"""
        ...


def _newest_first(runs, limit: Optional[int] = None) -> List[TaskRun]:
    ordered = sorted(runs, key=lambda run: run.started_at, reverse=True)
    return ordered[:limit] if limit is not None else ordered


class InMemoryRunStore(RunStore):
    """Process-local store for tests and one-off runs"""

    name = "memory"

    def __init__(self):
        self._runs: Dict[str, TaskRun] = {}
        self._lock = asyncio.Lock()

    async def save(self, run: TaskRun) -> None:
        async with self._lock:
            # Store a copy so later mutation of the caller's run is not visible
            self._runs[run.id] = TaskRun.from_dict(run.to_dict())
        log_store_event(self.name, "save", run.id)

    async def load(self, run_id: str) -> Optional[TaskRun]:
        run = self._runs.get(run_id)
        return TaskRun.from_dict(run.to_dict()) if run else None

    async def list_for_project(self, project_path: str, limit: Optional[int] = None) -> List[TaskRun]:
        return _newest_first((r for r in self._runs.values() if r.project_path == project_path), limit)

    async def list_recent(self, limit: int = 20) -> List[TaskRun]:
        return _newest_first(self._runs.values(), limit)

    async def list_by_outcome(self, outcome: RunOutcome, limit: Optional[int] = None) -> List[TaskRun]:
        return _newest_first((r for r in self._runs.values() if r.outcome == outcome), limit)

    async def delete(self, run_id: str) -> bool:
        async with self._lock:
            removed = self._runs.pop(run_id, None) is not None
        log_store_event(self.name, "delete", run_id, {"removed": removed})
        return removed

    async def delete_older_than(self, cutoff: datetime) -> int:
        cutoff = as_utc(cutoff)
        async with self._lock:
            expired = [run_id for run_id, run in self._runs.items() if run.started_at < cutoff]
            for run_id in expired:
                del self._runs[run_id]
        log_store_event(self.name, "delete_older_than", additional_context={"removed": len(expired)})
        return len(expired)


class FileRunStore(RunStore):
    """One JSON document per run under ``directory``.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace`` so a reader never sees a half-written record. File
    I/O runs in a worker thread to keep the event loop free.
    """

    name = "file"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._lock = asyncio.Lock()

    def _path_for(self, run_id: str) -> Path:
        if not run_id or "/" in run_id or "\\" in run_id or run_id.startswith("."):
            raise RunStoreError(f"Invalid run id: {run_id!r}", identifier=run_id)
        return self.directory / f"{run_id}.json"

    def _write(self, run: TaskRun) -> Path:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            target = self._path_for(run.id)
            fd, temp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(run.to_dict(), handle, indent=2)
                os.replace(temp_path, target)
            except BaseException:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as e:
            raise RunStoreError(f"Failed to save run {run.id}: {e}", identifier=run.id) from e
        return target

    def _read(self, path: Path) -> TaskRun:
        try:
            with path.open("r", encoding="utf-8") as handle:
                return TaskRun.from_dict(json.load(handle))
        except (OSError, ValueError, KeyError) as e:
            raise RunStoreError(f"Failed to read run record {path.name}: {e}", identifier=path.stem) from e

    def _read_if_present(self, path: Path) -> Optional[TaskRun]:
        if not path.exists():
            return None
        return self._read(path)

    def _all(self) -> List[TaskRun]:
        if not self.directory.exists():
            return []
        return [self._read(path) for path in self.directory.glob("*.json") if not path.name.startswith(".")]

    def _unlink(self, run_id: str) -> bool:
        try:
            self._path_for(run_id).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise RunStoreError(f"Failed to delete run {run_id}: {e}", identifier=run_id) from e
        return True

    def _remove_older_than(self, cutoff: datetime) -> int:
        return sum(1 for run in self._all() if run.started_at < cutoff and self._unlink(run.id))

    async def save(self, run: TaskRun) -> None:
        async with self._lock:
            target = await asyncio.to_thread(self._write, run)
        log_store_event(self.name, "save", run.id, {"path": str(target)})

    async def load(self, run_id: str) -> Optional[TaskRun]:
        return await asyncio.to_thread(self._read_if_present, self._path_for(run_id))

    async def list_for_project(self, project_path: str, limit: Optional[int] = None) -> List[TaskRun]:
        runs = await asyncio.to_thread(self._all)
        return _newest_first((r for r in runs if r.project_path == project_path), limit)

    async def list_recent(self, limit: int = 20) -> List[TaskRun]:
        return _newest_first(await asyncio.to_thread(self._all), limit)

    async def list_by_outcome(self, outcome: RunOutcome, limit: Optional[int] = None) -> List[TaskRun]:
        runs = await asyncio.to_thread(self._all)
        return _newest_first((r for r in runs if r.outcome == outcome), limit)

    async def delete(self, run_id: str) -> bool:
        async with self._lock:
            deleted = await asyncio.to_thread(self._unlink, run_id)
        if deleted:
            log_store_event(self.name, "delete", run_id)
        return deleted

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._lock:
            removed = await asyncio.to_thread(self._remove_older_than, as_utc(cutoff))
        log_store_event(self.name, "delete_older_than", additional_context={"removed": removed})
        return removed
