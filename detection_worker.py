# detection_worker.py

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from detections import DetectionResult
from vision_client import DetectorError

logger = logging.getLogger(__name__)


@dataclass
class DetectionJob:
    session: int
    image_b64: str


@dataclass
class DetectionOutcome:
    session: int
    result: Optional[DetectionResult] = None
    error: Optional[DetectorError] = None


class DetectionWorker(threading.Thread):
    """Runs detector calls off the UI thread.

    Jobs come in on `job_queue`; outcomes go out on `result_queue` and are
    applied by the capture loop on its own thread.
    """

    def __init__(
        self,
        job_queue: queue.Queue,
        result_queue: queue.Queue,
        detector,
        stop_event: Optional[threading.Event] = None,
    ):
        super().__init__(daemon=True)
        self._jobs = job_queue
        self._results = result_queue
        self._detector = detector
        self._stop_event = stop_event or threading.Event()

    def run(self):
        while not self._stop_event.is_set():
            try:
                job = self._jobs.get(timeout=0.5)
            except queue.Empty:
                continue

            if job is None:
                self._jobs.task_done()
                break

            try:
                self._results.put(self.process(job))
            finally:
                self._jobs.task_done()

    def process(self, job: DetectionJob) -> DetectionOutcome:
        try:
            result = self._detector.detect(job.image_b64)
        except DetectorError as e:
            return DetectionOutcome(session=job.session, error=e)
        except Exception as e:
            logger.exception(f"Unexpected detector failure: {e}")
            return DetectionOutcome(session=job.session, error=DetectorError(str(e)))
        return DetectionOutcome(session=job.session, result=result)

    def stop(self):
        self._stop_event.set()
        try:
            self._jobs.put_nowait(None)
        except queue.Full:
            pass
