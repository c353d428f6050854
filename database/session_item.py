from dataclasses import dataclass, field
from datetime import datetime

from emotion_aggregator import EmotionTally


@dataclass(frozen=True)
class SessionItem:
    name: str                     # e.g. "Weekly sync", or "Session 3" if left blank
    emotion_data: EmotionTally
    rating: int|None              # 1..5
    id: int|None = None           # assigned by the store
    created_at: datetime = field(default_factory=datetime.now)

    def to_record(self):
        """Persisted shape: {name, emotionData: {happy, sad, angry}, rating}."""
        return {
            "name": self.name,
            "emotionData": self.emotion_data.to_dict(),
            "rating": self.rating,
        }


def ordinal_session_name(index):
    return f"Session {index}"


def build_session(name, tally, rating, ordinal):
    """Blank names fall back to the ordinal name ("Session <ordinal>")."""
    name = (name or "").strip() or ordinal_session_name(ordinal)
    return SessionItem(name=name, emotion_data=tally, rating=rating)
