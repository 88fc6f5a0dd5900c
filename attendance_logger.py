# attendance_logger.py

import logging
import time
import uuid
from dataclasses import dataclass, asdict, field
from typing import Callable, Dict, List, Optional

from config import ATTENDANCE_LOG_INTERVAL_S
from detections import Emotion
from face_links import FaceLinkTable
from storage import JsonStore
from student_directory import StudentDirectory

logger = logging.getLogger(__name__)

ATTENDANCE_KEY = "attendance"


@dataclass
class AttendanceRecord:
    persistent_id: int
    timestamp: float
    emotion: Emotion
    subject: Optional[str] = None
    status: str = "present"
    source: str = "AI"
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["emotion"] = self.emotion.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AttendanceRecord":
        return cls(
            persistent_id=int(data["persistent_id"]),
            timestamp=float(data["timestamp"]),
            emotion=Emotion(data["emotion"]),
            subject=data.get("subject"),
            status=data.get("status", "present"),
            source=data.get("source", "AI"),
            record_id=data.get("record_id") or uuid.uuid4().hex,
        )


class AttendanceSink:
    """Append-only attendance log persisted through a JsonStore."""

    def __init__(self, store: JsonStore):
        self._store = store
        self._records: List[AttendanceRecord] = []
        for entry in self._store.load(ATTENDANCE_KEY, default=[]):
            try:
                self._records.append(AttendanceRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed attendance entry: {e}")

    def append(self, record: AttendanceRecord):
        self._records.append(record)
        self._store.save(ATTENDANCE_KEY, [r.to_dict() for r in self._records])

    def records(self) -> List[AttendanceRecord]:
        return list(self._records)

    def records_for(self, persistent_id: int) -> List[AttendanceRecord]:
        return [r for r in self._records if r.persistent_id == persistent_id]


class AttendanceLogger:
    """Debounced attendance logging per persistent id.

    A linked, unblocked face is logged at most once per `interval_seconds`.
    The last-logged map lives only in memory.
    """

    def __init__(
        self,
        face_links: FaceLinkTable,
        students: StudentDirectory,
        sink: AttendanceSink,
        interval_seconds: float = ATTENDANCE_LOG_INTERVAL_S,
        clock: Callable[[], float] = time.time,
    ):
        self.face_links = face_links
        self.students = students
        self.sink = sink
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_logged: Dict[int, float] = {}

    def last_logged(self, persistent_id: int) -> Optional[float]:
        return self._last_logged.get(persistent_id)

    def log(
        self,
        persistent_id: int,
        emotion: Emotion,
        subject: Optional[str] = None,
    ) -> Optional[AttendanceRecord]:
        roll_number = self.face_links.get(persistent_id)
        if roll_number is None:
            return None

        now = self._clock()
        student = self.students.get(roll_number)
        if student is None:
            logger.debug(f"Persistent id {persistent_id} links to unknown student {roll_number}")
            return None
        if student.is_blocked(now):
            logger.debug(f"Student {roll_number} is blocked, not logging attendance")
            return None

        last = self._last_logged.get(persistent_id)
        if last is not None and now - last <= self.interval_seconds:
            return None

        record = AttendanceRecord(
            persistent_id=persistent_id,
            timestamp=now,
            emotion=emotion,
            subject=subject,
        )
        self.sink.append(record)
        self._last_logged[persistent_id] = now
        logger.info(
            f"Attendance logged for {roll_number} (id {persistent_id}, "
            f"{emotion.value}, subject={subject})"
        )
        return record

    def reset(self):
        self._last_logged.clear()
