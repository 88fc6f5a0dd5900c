# camera_utils.py
# Camera utilities

import base64
import logging
from typing import Optional

import cv2
import numpy as np

from config import FRAME_WIDTH, FRAME_HEIGHT, JPEG_QUALITY

logger = logging.getLogger(__name__)


def open_camera(index: int) -> Optional[cv2.VideoCapture]:
    """Open a camera, or return None if it cannot be opened."""
    cap = cv2.VideoCapture(index)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, FRAME_WIDTH)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, FRAME_HEIGHT)
    if not cap.isOpened():
        cap.release()
        logger.error(f"Could not open camera index {index}")
        return None
    return cap


def encode_frame_jpeg(frame_bgr: np.ndarray, quality: int = JPEG_QUALITY) -> Optional[str]:
    """JPEG-encode a BGR frame and return it as base64 text."""
    if frame_bgr is None or frame_bgr.size == 0:
        return None
    ok, buf = cv2.imencode(".jpg", frame_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        return None
    return base64.b64encode(buf.tobytes()).decode("ascii")


def to_pixel_box(box, frame_width: int, frame_height: int):
    """Map a detector box to integer (left, top, right, bottom) pixels.

    Boxes whose coordinates all fall in [0, 1] are taken as normalized.
    """
    x, y, w, h = box.x, box.y, box.width, box.height
    if max(x, y, w, h) <= 1.0:
        x, w = x * frame_width, w * frame_width
        y, h = y * frame_height, h * frame_height
    return int(x), int(y), int(x + w), int(y + h)
