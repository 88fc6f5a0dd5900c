# track_store.py

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from detections import BoundingBox

logger = logging.getLogger(__name__)


@dataclass
class Track:
    track_id: int
    bounding_box: BoundingBox
    velocity: Tuple[float, float] = (0.0, 0.0)
    last_seen: float = 0.0
    provider_label: str = ""
    consecutive_misses: int = 0


class TrackStore:
    """Currently tracked faces.

    Ids come from a counter seeded at 1 that only moves forward. clear() drops
    the tracks but keeps the counter, so a retired id is never handed to
    another face, not even in a later capture session.
    """

    def __init__(self):
        self._tracks: Dict[int, Track] = {}
        self._next_track_id: int = 1

    def __len__(self) -> int:
        return len(self._tracks)

    def __contains__(self, track_id: int) -> bool:
        return track_id in self._tracks

    def tracks(self) -> List[Track]:
        return list(self._tracks.values())

    def get(self, track_id: int) -> Optional[Track]:
        return self._tracks.get(track_id)

    def peek_next_id(self) -> int:
        return self._next_track_id

    def allocate_id(self) -> int:
        track_id = self._next_track_id
        self._next_track_id += 1
        return track_id

    def reserve_through(self, track_id: int):
        """Make sure ids up to and including `track_id` are never allocated."""
        if track_id >= self._next_track_id:
            self._next_track_id = track_id + 1

    def insert(self, bounding_box: BoundingBox, provider_label: str, now: float) -> Track:
        track = Track(
            track_id=self.allocate_id(),
            bounding_box=bounding_box,
            last_seen=now,
            provider_label=provider_label,
        )
        self._tracks[track.track_id] = track
        logger.debug(f"TrackStore: created track {track.track_id} ({provider_label!r})")
        return track

    def update(self, track: Track):
        if track.track_id not in self._tracks:
            raise KeyError(f"unknown track {track.track_id}")
        self._tracks[track.track_id] = track

    def remove(self, track_id: int) -> Optional[Track]:
        track = self._tracks.pop(track_id, None)
        if track is not None:
            logger.debug(f"TrackStore: removed track {track_id}")
        return track

    def replace(self, tracks: Iterable[Track]):
        """Swap in the full track set computed for a frame."""
        new_tracks = {t.track_id: t for t in tracks}
        for track_id in new_tracks:
            if track_id >= self._next_track_id:
                # Ids must come from allocate_id(); keep the counter ahead anyway.
                self._next_track_id = track_id + 1
        self._tracks = new_tracks

    def clear(self):
        self._tracks.clear()
