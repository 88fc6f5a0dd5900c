# student_directory.py

import logging
import math
import time
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from storage import JsonStore

logger = logging.getLogger(__name__)

STUDENTS_KEY = "students"


@dataclass
class StudentInfo:
    roll_number: str
    name: str
    department: str = ""
    year: str = ""
    section: str = ""
    # None = not blocked, epoch seconds = temporary block, inf = permanent
    block_expires_at: Optional[float] = None
    blocked_by: Optional[str] = None

    def is_blocked(self, now: float) -> bool:
        if self.block_expires_at is None:
            return False
        return now < self.block_expires_at

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["block_expires_at"] is not None and math.isinf(data["block_expires_at"]):
            data["block_expires_at"] = "permanent"
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "StudentInfo":
        expires = data.get("block_expires_at")
        if expires == "permanent":
            expires = math.inf
        elif expires is not None:
            expires = float(expires)
        return cls(
            roll_number=str(data["roll_number"]),
            name=data.get("name", ""),
            department=data.get("department", ""),
            year=data.get("year", ""),
            section=data.get("section", ""),
            block_expires_at=expires,
            blocked_by=data.get("blocked_by"),
        )


class StudentDirectory:
    """Roll number -> StudentInfo, persisted through a JsonStore."""

    def __init__(self, store: JsonStore):
        self._store = store
        self._students: Dict[str, StudentInfo] = {}
        for entry in self._store.load(STUDENTS_KEY, default=[]):
            try:
                student = StudentInfo.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed student entry {entry!r}: {e}")
                continue
            self._students[student.roll_number] = student
        logger.info(f"StudentDirectory loaded {len(self._students)} students")

    def _persist(self):
        self._store.save(STUDENTS_KEY, [s.to_dict() for s in self._students.values()])

    def get(self, roll_number: str) -> Optional[StudentInfo]:
        return self._students.get(roll_number)

    def all(self) -> List[StudentInfo]:
        return list(self._students.values())

    def add(self, student: StudentInfo):
        self._students[student.roll_number] = student
        self._persist()

    def block(self, roll_number: str, until: Optional[float] = None,
              blocked_by: Optional[str] = None) -> bool:
        """Block a student until `until` (epoch seconds), or permanently if None."""
        student = self._students.get(roll_number)
        if student is None:
            return False
        student.block_expires_at = math.inf if until is None else float(until)
        student.blocked_by = blocked_by
        self._persist()
        logger.info(f"Blocked student {roll_number} until {student.block_expires_at}")
        return True

    def unblock(self, roll_number: str) -> bool:
        student = self._students.get(roll_number)
        if student is None:
            return False
        student.block_expires_at = None
        student.blocked_by = None
        self._persist()
        return True

    def is_blocked(self, roll_number: str, now: Optional[float] = None) -> bool:
        student = self._students.get(roll_number)
        if student is None:
            return False
        return student.is_blocked(time.time() if now is None else now)
