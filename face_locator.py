# face_locator.py
import logging
import os

import cv2

from errors import ClassifierUnavailableError

logger = logging.getLogger(__name__)


def clamp_box(x, y, width, height, frame_shape):
    """Keep a box inside the frame. Returns (x, y, w, h), possibly with w or h == 0."""
    h, w = frame_shape[:2]
    x = max(0, int(x))
    y = max(0, int(y))
    width = max(0, min(int(width), w - x))
    height = max(0, min(int(height), h - y))
    return x, y, width, height


def crop_face(frame, box):
    """Cut the face region out of a frame. Returns None for an empty crop."""
    x, y, width, height = box
    face_crop = frame[y:y + height, x:x + width]
    if face_crop.size == 0:
        return None
    return face_crop


class FaceLocator:
    """
    Finds faces in an RGB frame.

    Two backends:
        "haar"      - OpenCV frontal-face Haar cascade (bundled with opencv)
        "mediapipe" - MediaPipe Tasks FaceDetector, needs a .tflite model file
    """

    def __init__(self, backend="haar", model_path=None, min_detection_confidence=0.5):
        self.backend = backend
        self.min_detection_confidence = min_detection_confidence
        if backend == "haar":
            cascade_path = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
            self._detector = cv2.CascadeClassifier(cascade_path)
            if self._detector.empty():
                raise ClassifierUnavailableError(f"Could not load Haar cascade from {cascade_path}")
        elif backend == "mediapipe":
            if not model_path or not os.path.exists(model_path):
                raise ClassifierUnavailableError(f"Face detector model not found at: {model_path}")
            try:
                self._detector = self._create_mediapipe_detector(model_path)
            except Exception as e:
                raise ClassifierUnavailableError(f"Could not create MediaPipe face detector: {e}") from e
        else:
            raise ValueError(f"Unknown face backend: {backend}")
        logger.info("Face locator ready (%s)", backend)

    def _create_mediapipe_detector(self, model_path):
        import mediapipe as mp
        from mediapipe.tasks import python as mp_tasks
        from mediapipe.tasks.python import vision

        self._mp = mp
        options = vision.FaceDetectorOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=model_path),
            min_detection_confidence=self.min_detection_confidence,
        )
        return vision.FaceDetector.create_from_options(options)

    def locate_faces(self, frame_rgb):
        """
        Args:
            frame_rgb (numpy.ndarray): RGB frame (H, W, 3)

        Returns:
            list[tuple]: (x, y, width, height) boxes in pixels, clamped to the frame
        """
        if self.backend == "haar":
            gray = cv2.cvtColor(frame_rgb, cv2.COLOR_RGB2GRAY)
            raw_boxes = self._detector.detectMultiScale(
                gray, scaleFactor=1.1, minNeighbors=5, minSize=(30, 30)
            )
        else:
            image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=frame_rgb)
            result = self._detector.detect(image)
            raw_boxes = [
                (d.bounding_box.origin_x, d.bounding_box.origin_y,
                 d.bounding_box.width, d.bounding_box.height)
                for d in result.detections
            ]

        boxes = []
        for (x, y, width, height) in raw_boxes:
            box = clamp_box(x, y, width, height, frame_rgb.shape)
            if box[2] > 0 and box[3] > 0:
                boxes.append(box)
        return boxes

    def close(self):
        if self.backend == "mediapipe":
            self._detector.close()


def draw_face_boxes(frame, boxes):
    for (x, y, width, height) in boxes:
        cv2.rectangle(frame, (x, y), (x + width, y + height), (0, 255, 0), 2)
    return frame
