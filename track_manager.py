# track_manager.py
# Frame-to-frame face matching: motion-predicted greedy IoU assignment.

import logging
from dataclasses import replace
from typing import Dict, List, Sequence, Set, Tuple

from config import TRACK_IOU_THRESHOLD, MAX_CONSECUTIVE_MISSES, VELOCITY_ALPHA
from detections import BoundingBox, RawDetection, ResolvedDetection
from track_store import Track, TrackStore

logger = logging.getLogger(__name__)


def compute_iou(box_a: BoundingBox, box_b: BoundingBox) -> float:
    """Compute Intersection over Union between two (x, y, width, height) boxes.

    Returns 0.0 for degenerate boxes or no overlap; never NaN.
    """
    area_a = box_a.width * box_a.height
    area_b = box_b.width * box_b.height
    if area_a <= 0 or area_b <= 0:
        return 0.0

    inter_left = max(box_a.x, box_b.x)
    inter_top = max(box_a.y, box_b.y)
    inter_right = min(box_a.x + box_a.width, box_b.x + box_b.width)
    inter_bottom = min(box_a.y + box_a.height, box_b.y + box_b.height)

    inter_area = max(0.0, inter_right - inter_left) * max(0.0, inter_bottom - inter_top)
    if inter_area <= 0:
        return 0.0

    union = area_a + area_b - inter_area
    if union <= 0:
        return 0.0
    return inter_area / union


def box_center(box: BoundingBox) -> Tuple[float, float]:
    return box.x + box.width / 2, box.y + box.height / 2


def predict_box(box: BoundingBox, velocity: Tuple[float, float]) -> BoundingBox:
    """Translate the box center by one frame of velocity; size is unchanged."""
    vx, vy = velocity
    return BoundingBox(box.x + vx, box.y + vy, box.width, box.height)


class FrameMatcher:
    """Assigns persistent ids to each frame's detections.

    One call to match() is one atomic state transition of the TrackStore:
    the new track set is built on the side and swapped in at the end.
    """

    def __init__(
        self,
        store: TrackStore,
        iou_threshold: float = TRACK_IOU_THRESHOLD,
        max_misses: int = MAX_CONSECUTIVE_MISSES,
        velocity_alpha: float = VELOCITY_ALPHA,
    ):
        self.store = store
        self.iou_threshold = iou_threshold
        self.max_misses = max_misses
        self.velocity_alpha = velocity_alpha

    def _candidates(
        self,
        predictions: Dict[int, BoundingBox],
        detections: Sequence[RawDetection],
    ) -> List[Tuple[float, int, int]]:
        candidates = []
        for track_id, predicted in predictions.items():
            for det_idx, det in enumerate(detections):
                iou = compute_iou(predicted, det.bounding_box)
                if iou > self.iou_threshold:
                    candidates.append((iou, track_id, det_idx))
        # sorted() is stable, so equal IoUs keep track-then-detection order
        return sorted(candidates, key=lambda c: c[0], reverse=True)

    def _assign(
        self,
        candidates: List[Tuple[float, int, int]],
        detections: Sequence[RawDetection],
    ) -> Dict[int, int]:
        matches: Dict[int, int] = {}
        matched_detections: Set[int] = set()
        claimed_labels: Set[str] = set()

        for iou, track_id, det_idx in candidates:
            if track_id in matches or det_idx in matched_detections:
                continue
            label = detections[det_idx].provider_label
            if label and label in claimed_labels:
                logger.debug(
                    f"FrameMatcher: skip track {track_id} <- det {det_idx}, "
                    f"label {label!r} already claimed this frame"
                )
                continue
            matches[track_id] = det_idx
            matched_detections.add(det_idx)
            if label:
                claimed_labels.add(label)
        return matches

    def _updated_track(self, track: Track, det: RawDetection, now: float) -> Track:
        old_cx, old_cy = box_center(track.bounding_box)
        new_cx, new_cy = box_center(det.bounding_box)
        alpha = self.velocity_alpha
        vx = alpha * (new_cx - old_cx) + (1 - alpha) * track.velocity[0]
        vy = alpha * (new_cy - old_cy) + (1 - alpha) * track.velocity[1]
        return replace(
            track,
            bounding_box=det.bounding_box,
            velocity=(vx, vy),
            last_seen=now,
            provider_label=det.provider_label,
            consecutive_misses=0,
        )

    def match(self, detections: Sequence[RawDetection], now: float) -> List[ResolvedDetection]:
        """Match one frame's detections against the store and update it.

        Returns one ResolvedDetection per input detection, in input order.
        """
        tracks = {t.track_id: t for t in self.store.tracks()}
        predictions = {
            track_id: predict_box(t.bounding_box, t.velocity)
            for track_id, t in tracks.items()
        }

        candidates = self._candidates(predictions, detections)
        matches = self._assign(candidates, detections)

        new_tracks: List[Track] = []
        persistent_ids: Dict[int, int] = {}

        for track_id, det_idx in matches.items():
            new_tracks.append(self._updated_track(tracks[track_id], detections[det_idx], now))
            persistent_ids[det_idx] = track_id

        for track_id, track in tracks.items():
            if track_id in matches:
                continue
            misses = track.consecutive_misses + 1
            if misses < self.max_misses:
                new_tracks.append(
                    replace(track, bounding_box=predictions[track_id], consecutive_misses=misses)
                )
            else:
                logger.debug(f"FrameMatcher: retiring track {track_id} after {misses} misses")

        for det_idx, det in enumerate(detections):
            if det_idx in persistent_ids:
                continue
            track_id = self.store.allocate_id()
            new_tracks.append(
                Track(
                    track_id=track_id,
                    bounding_box=det.bounding_box,
                    last_seen=now,
                    provider_label=det.provider_label,
                )
            )
            persistent_ids[det_idx] = track_id
            logger.debug(f"FrameMatcher: new track {track_id} for {det.provider_label!r}")

        self.store.replace(new_tracks)

        return [
            ResolvedDetection(detection=det, persistent_id=persistent_ids[det_idx])
            for det_idx, det in enumerate(detections)
        ]

    def skip_frame(self, now: float, count_as_miss: bool = False):
        """Apply the failed-detector-frame policy.

        By default the store is left as-is. With count_as_miss the frame is
        treated as an empty detection set, so every track takes a miss.
        """
        if count_as_miss:
            self.match([], now)
