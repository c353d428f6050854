# config.py
"""
Runtime configuration for Meeting Emotion Sense.

Defaults match the bundled 3-class model (Happy / Sad / Angry, 224x224 RGB input).
"""
from dataclasses import dataclass
from typing import Tuple, Union


@dataclass
class Config:
    """Configuration for capture, inference and storage."""

    # Emotion model (.onnx through onnxruntime, .keras/.h5 through tensorflow)
    model_path: str = "./models/emotionRecog_model.onnx"
    emotion_labels: Tuple[str, ...] = ("Happy", "Sad", "Angry")
    image_size: int = 224

    # Face detection: "haar" (ships with opencv) or "mediapipe" (needs a .tflite model)
    face_backend: str = "haar"
    face_model_path: str = "./models/blaze_face_short_range.tflite"
    min_detection_confidence: float = 0.5

    # Capture: device index, video file, stream URL, or "screen" / "screen:<monitor>"
    capture_source: Union[int, str] = 0
    frame_delay: int = 5  # classify every Nth tick
    tick_interval: float = 1 / 30
    classifier_workers: int = 2
    drain_timeout: float = 2.0

    db_path: str = "./database/session_log.db"
    warning_timeout: float = 3.0

    def __post_init__(self):
        if self.frame_delay < 1:
            raise ValueError("frame_delay must be >= 1")
        if self.tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if self.face_backend not in ("haar", "mediapipe"):
            raise ValueError(f"Unknown face backend: {self.face_backend}")
        if isinstance(self.capture_source, str) and self.capture_source.isdigit():
            self.capture_source = int(self.capture_source)
        if isinstance(self.capture_source, str) and self.capture_source.startswith("screen"):
            _, _, monitor = self.capture_source.partition(":")
            if monitor and not monitor.isdigit():
                raise ValueError(f"Bad screen source: {self.capture_source!r}")
