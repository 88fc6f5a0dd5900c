# face_links.py

import logging
import threading
from typing import Dict, List, Optional

from storage import JsonStore

logger = logging.getLogger(__name__)

FACE_LINKS_KEY = "face_links"


class FaceLinkTable:
    """Persistent id -> student roll number.

    Written only by explicit linking actions; the tracking path just reads it.
    """

    def __init__(self, store: JsonStore):
        self._store = store
        self._lock = threading.RLock()
        self._links: Dict[int, str] = {}
        # Stored as a list of [persistent_id, roll_number] pairs
        for pair in self._store.load(FACE_LINKS_KEY, default=[]):
            try:
                persistent_id, roll_number = pair
                self._links[int(persistent_id)] = str(roll_number)
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed face link {pair!r}")

    def _persist(self):
        self._store.save(FACE_LINKS_KEY, [[pid, rn] for pid, rn in self._links.items()])

    def get(self, persistent_id: int) -> Optional[str]:
        with self._lock:
            return self._links.get(persistent_id)

    def snapshot(self) -> Dict[int, str]:
        with self._lock:
            return dict(self._links)

    def ids_for(self, roll_number: str) -> List[int]:
        with self._lock:
            return sorted(pid for pid, rn in self._links.items() if rn == roll_number)

    def link(self, persistent_id: int, roll_number: str, replace_existing: bool = False):
        """Link a persistent id to a student.

        With replace_existing, older links of the same student are removed first
        so the student is recognised only through the new face.
        """
        with self._lock:
            if replace_existing:
                for pid in [p for p, rn in self._links.items() if rn == roll_number]:
                    del self._links[pid]
            self._links[persistent_id] = roll_number
            self._persist()
        logger.info(f"Linked persistent id {persistent_id} to student {roll_number}")

    def unlink(self, persistent_id: int) -> bool:
        with self._lock:
            if persistent_id not in self._links:
                return False
            del self._links[persistent_id]
            self._persist()
        logger.info(f"Unlinked persistent id {persistent_id}")
        return True
