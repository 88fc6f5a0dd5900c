# summary.py

from collections import Counter
from typing import Dict, Sequence

from detections import HandDetection, ResolvedDetection


def summarize(faces: Sequence[ResolvedDetection], hands: Sequence[HandDetection]) -> Dict:
    """Per-frame counts for the status bar."""
    emotions = Counter(f.emotion.value for f in faces)
    signs = Counter(h.sign.value for h in hands)
    return {
        "faces": len(faces),
        "linked": sum(1 for f in faces if f.student is not None),
        "emotions": dict(emotions),
        "hands": dict(signs),
    }


def format_summary(summary: Dict) -> str:
    text = f"{summary['faces']} faces ({summary['linked']} linked)"
    if summary["emotions"]:
        top = ", ".join(f"{name} {n}" for name, n in Counter(summary["emotions"]).most_common(3))
        text += f" | {top}"
    if summary["hands"]:
        text += " | hands: " + ", ".join(f"{name} {n}" for name, n in summary["hands"].items())
    return text
