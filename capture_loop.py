# capture_loop.py
# Timer-driven capture -> detect -> track -> attendance cycle.

import logging
import queue
import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

import numpy as np

from attendance_logger import AttendanceLogger
from camera_utils import encode_frame_jpeg
from config import (
    ANALYSIS_INTERVAL_MS,
    COUNT_FAILED_FRAMES_AS_MISSES,
    RATE_LIMIT_PAUSE_MS,
    RESULT_POLL_MS,
)
from detection_worker import DetectionJob, DetectionOutcome
from detections import DetectionResult, HandDetection, ResolvedDetection
from face_links import FaceLinkTable
from student_directory import StudentDirectory
from track_manager import FrameMatcher
from track_store import TrackStore
from vision_client import DetectorError, NetworkError, RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class CaptureError:
    title: str
    message: str


class CaptureLoop:
    """Drives one analysis cycle every `interval_ms` while the camera runs.

    `scheduler` is anything with tkinter's after()/after_cancel() (the Tk root).
    All track and attendance updates run on the scheduler's thread; only the
    detector call happens elsewhere. A busy flag keeps at most one frame in
    flight, so the TrackStore sees exactly one update per detector response.
    """

    def __init__(
        self,
        scheduler,
        frame_source: Callable[[], Optional[np.ndarray]],
        job_queue: queue.Queue,
        result_queue: queue.Queue,
        attendance_logger: AttendanceLogger,
        face_links: FaceLinkTable,
        students: StudentDirectory,
        interval_ms: int = ANALYSIS_INTERVAL_MS,
        rate_limit_pause_ms: int = RATE_LIMIT_PAUSE_MS,
        poll_ms: int = RESULT_POLL_MS,
        count_failed_frames_as_misses: bool = COUNT_FAILED_FRAMES_AS_MISSES,
        encoder: Callable[[np.ndarray], Optional[str]] = encode_frame_jpeg,
        clock: Callable[[], float] = time.time,
    ):
        self.scheduler = scheduler
        self.frame_source = frame_source
        self.job_queue = job_queue
        self.result_queue = result_queue
        self.attendance_logger = attendance_logger
        self.face_links = face_links
        self.students = students
        self.interval_ms = interval_ms
        self.rate_limit_pause_ms = rate_limit_pause_ms
        self.poll_ms = poll_ms
        self.count_failed_frames_as_misses = count_failed_frames_as_misses
        self._encode = encoder
        self._clock = clock

        self.store = TrackStore()
        self.matcher = FrameMatcher(self.store)

        self.running = False
        self.busy = False
        self.paused_for_rate_limit = False
        self.error: Optional[CaptureError] = None
        self.subject: Optional[str] = None
        self.last_detections: List[ResolvedDetection] = []
        self.last_hands: List[HandDetection] = []

        # Bumped on start/stop so results from an older session are ignored
        self._session = 0
        self._tick_handle = None
        self._poll_handle = None
        self._resume_handle = None

    # ---------- Lifecycle ----------

    def start(self):
        if self.running:
            return
        self._session += 1
        # Ids are persisted through face links; a new session must not reuse one
        self.store.clear()
        self.store.reserve_through(max(self.face_links.snapshot(), default=0))
        self.running = True
        self.busy = False
        self.paused_for_rate_limit = False
        self.error = None
        self.last_detections = []
        self.last_hands = []
        self._tick_handle = self.scheduler.after(self.interval_ms, self._on_tick)
        self._poll_handle = self.scheduler.after(self.poll_ms, self._on_poll)
        logger.info(f"Capture session {self._session} started")

    def stop(self):
        if not self.running:
            return
        self.running = False
        for handle in (self._tick_handle, self._poll_handle, self._resume_handle):
            if handle is not None:
                self.scheduler.after_cancel(handle)
        self._tick_handle = self._poll_handle = self._resume_handle = None
        self._session += 1
        self.store.clear()
        self.busy = False
        self.paused_for_rate_limit = False
        self.last_detections = []
        self.last_hands = []
        logger.info("Capture stopped, tracks cleared")

    # ---------- Timers ----------

    def _on_tick(self):
        self._tick_handle = None
        if not self.running:
            return
        self.tick()
        self._tick_handle = self.scheduler.after(self.interval_ms, self._on_tick)

    def _on_poll(self):
        self._poll_handle = None
        if not self.running:
            return
        self.poll_results()
        self._poll_handle = self.scheduler.after(self.poll_ms, self._on_poll)

    def _resume_after_rate_limit(self):
        self._resume_handle = None
        self.paused_for_rate_limit = False
        logger.info("Rate-limit pause over, resuming analysis")

    # ---------- Cycle ----------

    def tick(self) -> bool:
        """Grab and submit one frame. Returns True if a frame went out."""
        if not self.running or self.busy or self.paused_for_rate_limit:
            return False

        frame = self.frame_source()
        if frame is None:
            return False
        image_b64 = self._encode(frame)
        if image_b64 is None:
            logger.warning("Frame encoding failed, skipping cycle")
            return False

        try:
            self.job_queue.put_nowait(DetectionJob(session=self._session, image_b64=image_b64))
        except queue.Full:
            logger.warning("Detection queue full, skipping cycle")
            return False
        self.busy = True
        return True

    def poll_results(self):
        while True:
            try:
                outcome = self.result_queue.get_nowait()
            except queue.Empty:
                return
            self.process_outcome(outcome)

    def process_outcome(self, outcome: DetectionOutcome):
        if outcome.session != self._session:
            logger.debug(f"Dropping result from stale session {outcome.session}")
            return
        self.busy = False
        if outcome.error is not None:
            self.handle_error(outcome.error)
        elif outcome.result is not None:
            self.handle_result(outcome.result)

    def handle_result(self, result: DetectionResult) -> List[ResolvedDetection]:
        now = self._clock()
        resolved = self.matcher.match(result.faces, now)

        attached = []
        for det in resolved:
            roll_number = self.face_links.get(det.persistent_id)
            student = self.students.get(roll_number) if roll_number else None
            attached.append(replace(det, student=student) if student else det)

        for det in attached:
            if det.student is not None:
                self.attendance_logger.log(det.persistent_id, det.emotion, self.subject)

        self.error = None
        self.last_detections = attached
        self.last_hands = list(result.hands)
        return attached

    def handle_error(self, exc: DetectorError):
        if isinstance(exc, RateLimitError):
            logger.warning(f"Rate limited, pausing analysis for {self.rate_limit_pause_ms} ms")
            self.paused_for_rate_limit = True
            if self._resume_handle is not None:
                self.scheduler.after_cancel(self._resume_handle)
            self._resume_handle = self.scheduler.after(
                self.rate_limit_pause_ms, self._resume_after_rate_limit
            )
        elif isinstance(exc, NetworkError):
            logger.error(f"Detector unreachable: {exc}")
            self.error = CaptureError(
                "Network Error", "Cannot connect to the AI service. Please check your connection."
            )
        else:
            logger.error(f"Detector failed: {exc}")
            self.error = CaptureError("API Error", "Failed to process the video frame.")

        self.matcher.skip_frame(self._clock(), count_as_miss=self.count_failed_frames_as_misses)
