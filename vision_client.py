# vision_client.py
# HTTP client for the external face/hand/emotion detection service.

import logging
from typing import Optional

import requests

from config import VISION_API_URL, VISION_API_KEY, VISION_TIMEOUT_S
from detections import (
    BoundingBox,
    DetectionResult,
    Emotion,
    HandDetection,
    HandSign,
    HeadPose,
    RawDetection,
)

logger = logging.getLogger(__name__)


class DetectorError(Exception):
    """Generic failure of a detector call."""


class RateLimitError(DetectorError):
    """The provider asked us to slow down."""


class NetworkError(DetectorError):
    """The provider could not be reached."""


class MalformedResponseError(DetectorError):
    """The provider answered with something we cannot parse."""


def _parse_box(data: dict) -> BoundingBox:
    return BoundingBox(
        x=float(data["x"]),
        y=float(data["y"]),
        width=float(data["width"]),
        height=float(data["height"]),
    )


def parse_detection_result(payload) -> DetectionResult:
    """Build a DetectionResult from the provider's JSON payload.

    Expected shape:
        {"faces": [{"personId", "emotion", "confidence", "boundingBox", "headPose"?}],
         "hands": [{"sign", "confidence", "boundingBox"}]}
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError("response is not a JSON object")
    faces = payload.get("faces")
    hands = payload.get("hands")
    if not isinstance(faces, list) or not isinstance(hands, list):
        raise MalformedResponseError("response must contain 'faces' and 'hands' lists")

    try:
        result = DetectionResult()
        for face in faces:
            head_pose = face.get("headPose")
            result.faces.append(
                RawDetection(
                    provider_label=str(face.get("personId") or ""),
                    emotion=Emotion(face["emotion"]),
                    bounding_box=_parse_box(face["boundingBox"]),
                    confidence=float(face.get("confidence", 0.0)),
                    head_pose=HeadPose(head_pose) if head_pose else None,
                )
            )
        for hand in hands:
            result.hands.append(
                HandDetection(
                    sign=HandSign(hand["sign"]),
                    confidence=float(hand.get("confidence", 0.0)),
                    bounding_box=_parse_box(hand["boundingBox"]),
                )
            )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MalformedResponseError(f"invalid detection entry: {e}") from e
    return result


class VisionClient:
    def __init__(
        self,
        api_url: str = VISION_API_URL,
        api_key: Optional[str] = VISION_API_KEY,
        timeout: float = VISION_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def detect(self, image_b64: str) -> DetectionResult:
        """Send one base64 JPEG frame and return its detections.

        Raises RateLimitError, NetworkError or DetectorError.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {"image": image_b64, "mime_type": "image/jpeg"}

        try:
            r = self._session.post(self.api_url, json=body, headers=headers, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f"Vision API network error: {e}")
            raise NetworkError(str(e)) from e
        except requests.RequestException as e:
            logger.error(f"Vision API request failed: {e}")
            raise DetectorError(str(e)) from e

        if r.status_code == 429 or (r.status_code != 200 and "RESOURCE_EXHAUSTED" in r.text):
            logger.warning("Vision API rate limit exceeded")
            raise RateLimitError(f"HTTP {r.status_code}")
        if r.status_code != 200:
            logger.error(f"Vision API non-200 {r.status_code}: {r.text[:160]}")
            raise DetectorError(f"HTTP {r.status_code}")

        try:
            payload = r.json()
        except ValueError as e:
            raise MalformedResponseError("response is not JSON") from e

        result = parse_detection_result(payload)
        logger.debug(f"Vision API: {len(result.faces)} faces, {len(result.hands)} hands")
        return result
