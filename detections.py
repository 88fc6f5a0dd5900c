# detections.py
# Detection data model shared by the detector client, tracker and capture loop.

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from student_directory import StudentInfo


class Emotion(Enum):
    HAPPY = "Happy"
    SAD = "Sad"
    ANGRY = "Angry"
    SURPRISED = "Surprised"
    NEUTRAL = "Neutral"
    DISGUSTED = "Disgusted"
    FEARFUL = "Fearful"


class HeadPose(Enum):
    LOOKING_STRAIGHT = "Looking Straight"
    LOOKING_LEFT = "Looking Left"
    LOOKING_RIGHT = "Looking Right"
    LOOKING_UP = "Looking Up"
    LOOKING_DOWN = "Looking Down"


class HandSign(Enum):
    THUMBS_UP = "Thumbs Up"
    THUMBS_DOWN = "Thumbs Down"
    PEACE = "Peace"
    OK = "OK"
    FIST = "Fist"
    WAVE = "Wave"
    POINTING = "Pointing"
    HIGH_FIVE = "High Five"
    CALL_ME = "Call Me"
    CROSSED_FINGERS = "Crossed Fingers"
    LOVE = "Love"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box: top-left corner plus size, in the detector's units."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class RawDetection:
    """One face as reported by the vision provider for a single frame.

    `provider_label` is the provider's own per-frame name for the face
    ("Person 1", ...) and is not stable across frames.
    """

    provider_label: str
    emotion: Emotion
    bounding_box: BoundingBox
    confidence: float = 0.0
    head_pose: Optional[HeadPose] = None


@dataclass(frozen=True)
class HandDetection:
    sign: HandSign
    confidence: float
    bounding_box: BoundingBox


@dataclass
class DetectionResult:
    faces: List[RawDetection] = field(default_factory=list)
    hands: List[HandDetection] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedDetection:
    """A RawDetection tagged with its persistent track id.

    `student` is filled in by the capture loop from the face-link table.
    """

    detection: RawDetection
    persistent_id: int
    student: Optional[StudentInfo] = None

    @property
    def bounding_box(self) -> BoundingBox:
        return self.detection.bounding_box

    @property
    def emotion(self) -> Emotion:
        return self.detection.emotion
