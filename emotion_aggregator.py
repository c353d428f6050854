# emotion_aggregator.py
import logging
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TALLY_KEYS = ("happy", "sad", "angry")


@dataclass(frozen=True)
class EmotionTally:
    """Per-label detection counts for one session."""

    happy: int = 0
    sad: int = 0
    angry: int = 0

    @property
    def total(self) -> int:
        return self.happy + self.sad + self.angry

    def to_dict(self) -> dict:
        return {"happy": self.happy, "sad": self.sad, "angry": self.angry}


class EmotionAggregator:
    """
    Accumulates detections for the active session.

    Increments may arrive from several classification workers at once, so
    every access goes through one lock.
    """

    def __init__(self):
        self._counts = dict.fromkeys(TALLY_KEYS, 0)
        self._lock = threading.Lock()

    def reset(self):
        with self._lock:
            for key in TALLY_KEYS:
                self._counts[key] = 0

    def record_detection(self, label) -> bool:
        """
        Count one classified face.

        Args:
            label (str): classifier label, matched case-insensitively
                         ("Happy", "SAD", ...)

        Returns:
            bool: True if the label was counted, False if it was dropped
        """
        key = label.strip().lower() if isinstance(label, str) else None
        if key not in self._counts:
            logger.debug("Ignoring unrecognized label: %r", label)
            return False
        with self._lock:
            self._counts[key] += 1
        return True

    def snapshot(self) -> EmotionTally:
        with self._lock:
            return EmotionTally(**self._counts)
