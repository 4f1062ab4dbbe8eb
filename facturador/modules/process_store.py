"""
FACTURADOR-DIAN — ProcessStore
Ephemeral trackId → process record store for the fire-and-poll endpoints.

- Records live only in memory and are lost on restart.
- Each record expires `ttl_seconds` after its last update.
- At most `max_entries` records are kept; the least recently updated go first.
- All mutations run on the event loop, so no locking is needed.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from facturador.utils.dian_helpers import utc_now_iso

logger = logging.getLogger(__name__)

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"


class ProcessRecord:

    def __init__(self, track_id: str, message: str, touched_at: float):
        self.track_id = track_id
        self.logs: list[str] = []
        self.status = STATUS_PROCESSING
        self.message = message
        self.start_time = utc_now_iso()
        self.end_time: Optional[str] = None
        self.result: Optional[Any] = None
        self.error: Optional[str] = None
        self.touched_at = touched_at

    def status_dict(self) -> dict:
        data = {
            "status": self.status,
            "message": self.message,
            "startTime": self.start_time,
        }
        if self.end_time:
            data["endTime"] = self.end_time
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


class ProcessStore:

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._records: "OrderedDict[str, ProcessRecord]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, track_id: str) -> bool:
        return self.get(track_id) is not None

    def start(self, track_id: str, first_log: str, message: str) -> ProcessRecord:
        record = ProcessRecord(track_id, message, self._clock())
        record.logs.append(first_log)
        self._records[track_id] = record
        self._records.move_to_end(track_id)
        self._evict_overflow()
        return record

    def get(self, track_id: str) -> Optional[ProcessRecord]:
        record = self._records.get(track_id)
        if record is None:
            return None
        if self._is_expired(record):
            del self._records[track_id]
            return None
        return record

    def append_logs(self, track_id: str, lines: list[str]) -> None:
        record = self._touch(track_id)
        if record:
            record.logs.extend(lines)

    def complete(self, track_id: str, message: str, result: Any) -> None:
        record = self._touch(track_id)
        if record:
            record.status = STATUS_COMPLETED
            record.message = message
            record.result = result
            record.end_time = utc_now_iso()

    def fail(self, track_id: str, message: str, error: str) -> None:
        record = self._touch(track_id)
        if record:
            record.status = STATUS_ERROR
            record.message = message
            record.error = error
            record.end_time = utc_now_iso()

    def purge_expired(self) -> int:
        expired = [tid for tid, r in self._records.items() if self._is_expired(r)]
        for tid in expired:
            del self._records[tid]
        if expired:
            logger.info(f"Process cleanup: removed {len(expired)} expired record(s). Active: {len(self._records)}")
        return len(expired)

    def _touch(self, track_id: str) -> Optional[ProcessRecord]:
        record = self.get(track_id)
        if record is None:
            # Expired or evicted while the background work was running
            logger.warning(f"Process {track_id} no longer tracked; update dropped")
            return None
        record.touched_at = self._clock()
        self._records.move_to_end(track_id)
        return record

    def _is_expired(self, record: ProcessRecord) -> bool:
        return self._clock() - record.touched_at > self.ttl_seconds

    def _evict_overflow(self) -> None:
        while len(self._records) > self.max_entries:
            track_id, _ = self._records.popitem(last=False)
            logger.debug(f"Process store full: evicted {track_id}")
