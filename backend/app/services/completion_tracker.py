"""Per-day completion tracking with optimistic writes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple
from uuid import UUID

from app.api.schemas.recommendation import ProgramType

logger = logging.getLogger(__name__)

# Records are keyed per day by program type and item name, so a workout and a
# meal sharing a name stay separate.
RecordKey = Tuple[ProgramType, str]


class SyncStatus(str, Enum):
    SYNCED = "synced"
    PENDING = "pending"
    PENDING_RETRY = "pending_retry"


class DayState(str, Enum):
    EMPTY = "empty"
    PARTIAL = "partial"
    COMPLETE = "complete"


@dataclass
class HistoryEntry:
    user_id: UUID
    date: date
    type: ProgramType
    item_name: str
    completed: bool
    item_id: Optional[str] = None
    item_details: Dict[str, Any] = field(default_factory=dict)


class HistoryWriter(Protocol):
    async def append(self, entry: HistoryEntry) -> None:
        """Persist one completion toggle."""


@dataclass
class CompletionRecord:
    date: date
    item_name: str
    done: bool
    program_type: ProgramType
    item_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    sync_status: SyncStatus = SyncStatus.PENDING
    # Bumped on every local toggle so a slow write cannot overwrite a newer one's status.
    version: int = 0


@dataclass(frozen=True)
class DayCompletionSummary:
    completed: int
    total: int

    @property
    def state(self) -> DayState:
        # A day with items but none done shows the same neutral indicator as a day without items.
        if self.total == 0 or self.completed == 0:
            return DayState.EMPTY
        if self.completed >= self.total:
            return DayState.COMPLETE
        return DayState.PARTIAL


@dataclass(frozen=True)
class CalendarTile:
    date: date
    summary: DayCompletionSummary
    style: str
    badge: Optional[str] = None

    @property
    def state(self) -> DayState:
        return self.summary.state


class CompletionTracker:
    """
    Holds one user's completion records.

    Toggles are applied locally before the history write is attempted; a
    failed write leaves the toggle in place and marks it `pending_retry`
    until `retry_pending` succeeds. `pending_entries` and `restore_pending`
    carry unsent toggles from one tracker to the next.
    """

    def __init__(self, user_id: UUID, writer: HistoryWriter) -> None:
        self.user_id = user_id
        self._writer = writer
        self._records: Dict[date, Dict[RecordKey, CompletionRecord]] = {}

    def seed(
        self,
        histories: Mapping[date | str, Mapping[str, bool]],
        program_type: ProgramType = ProgramType.WORKOUT,
    ) -> None:
        """Load persisted `{date: {item_name: done}}` history; seeded records count as synced."""
        for raw_day, items in histories.items():
            day = _as_date(raw_day)
            bucket = self._records.setdefault(day, {})
            for item_name, done in items.items():
                bucket[(program_type, item_name)] = CompletionRecord(
                    date=day,
                    item_name=item_name,
                    done=bool(done),
                    program_type=program_type,
                    sync_status=SyncStatus.SYNCED,
                )

    def restore_pending(self, entries: Iterable[HistoryEntry]) -> None:
        """Re-apply toggles whose history write never landed; they stay `pending_retry`."""
        for entry in entries:
            self._records.setdefault(entry.date, {})[(entry.type, entry.item_name)] = CompletionRecord(
                date=entry.date,
                item_name=entry.item_name,
                done=entry.completed,
                program_type=entry.type,
                item_id=entry.item_id,
                details=dict(entry.item_details),
                sync_status=SyncStatus.PENDING_RETRY,
            )

    async def set_completion(
        self,
        day: date,
        item_name: str,
        done: bool,
        *,
        program_type: ProgramType,
        details: Optional[Mapping[str, Any]] = None,
        item_id: Optional[str] = None,
    ) -> CompletionRecord:
        bucket = self._records.setdefault(day, {})
        key = (program_type, item_name)
        record = bucket.get(key)
        if record is None:
            record = CompletionRecord(date=day, item_name=item_name, done=done, program_type=program_type)
            bucket[key] = record
        record.done = done
        if details is not None:
            record.details = dict(details)
        if item_id is not None:
            record.item_id = item_id
        record.version += 1
        record.sync_status = SyncStatus.PENDING

        await self._send(record)
        return record

    async def retry_pending(self) -> int:
        """Re-send every `pending_retry` record once; returns how many are now synced."""
        synced = 0
        for record in self.pending_records():
            if await self._send(record):
                synced += 1
        return synced

    def pending_records(self) -> List[CompletionRecord]:
        return [
            record
            for bucket in self._records.values()
            for record in bucket.values()
            if record.sync_status is SyncStatus.PENDING_RETRY
        ]

    def pending_entries(self) -> List[HistoryEntry]:
        return [self._entry_for(record) for record in self.pending_records()]

    def records_for(self, day: date, program_type: Optional[ProgramType] = None) -> Dict[str, bool]:
        return {record.item_name: record.done for record in self._day_records(day, program_type)}

    def get_day_summary(self, day: date, program_type: Optional[ProgramType] = None) -> DayCompletionSummary:
        records = self._day_records(day, program_type)
        return DayCompletionSummary(
            completed=sum(1 for record in records if record.done),
            total=len(records),
        )

    def summaries_between(
        self,
        start: date,
        end: date,
        program_type: Optional[ProgramType] = None,
    ) -> Dict[date, DayCompletionSummary]:
        summaries: Dict[date, DayCompletionSummary] = {}
        current = start
        while current <= end:
            summaries[current] = self.get_day_summary(current, program_type)
            current += timedelta(days=1)
        return summaries

    def calendar_tile(
        self,
        day: date,
        today: Optional[date] = None,
        program_type: Optional[ProgramType] = None,
    ) -> CalendarTile:
        summary = self.get_day_summary(day, program_type)
        state = summary.state
        if state is DayState.COMPLETE:
            return CalendarTile(date=day, summary=summary, style="complete", badge="✓")
        if state is DayState.PARTIAL:
            return CalendarTile(date=day, summary=summary, style="in_progress", badge=str(summary.completed))
        style = "today" if day == (today or date.today()) else "neutral"
        return CalendarTile(date=day, summary=summary, style=style)

    def _day_records(self, day: date, program_type: Optional[ProgramType]) -> List[CompletionRecord]:
        return [
            record
            for (record_type, _), record in self._records.get(day, {}).items()
            if program_type is None or record_type is program_type
        ]

    def _entry_for(self, record: CompletionRecord) -> HistoryEntry:
        return HistoryEntry(
            user_id=self.user_id,
            date=record.date,
            type=record.program_type,
            item_name=record.item_name,
            completed=record.done,
            item_id=record.item_id,
            item_details=dict(record.details),
        )

    async def _send(self, record: CompletionRecord) -> bool:
        version = record.version
        entry = self._entry_for(record)
        try:
            await self._writer.append(entry)
        except Exception:
            logger.warning(
                "History write failed for user=%s date=%s item=%s; marked for retry",
                self.user_id,
                record.date.isoformat(),
                record.item_name,
                exc_info=True,
            )
            if record.version == version:
                record.sync_status = SyncStatus.PENDING_RETRY
            return False
        if record.version == version:
            record.sync_status = SyncStatus.SYNCED
        return True


def _as_date(value: date | str) -> date:
    return value if isinstance(value, date) else date.fromisoformat(str(value))
