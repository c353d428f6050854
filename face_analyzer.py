import logging
import os

import cv2
import numpy as np

from errors import ClassifierUnavailableError

logger = logging.getLogger(__name__)


class FaceAnalyzer:
    def __init__(self, model_path='./models/emotionRecog_model.onnx',
                 emotion_labels=('Happy', 'Sad', 'Angry'), img_size=224):
        self.img_size = img_size  # Model input size (square, RGB)
        self.emotion_labels = list(emotion_labels)
        self.model = self._load_model(model_path)

    def _load_model(self, path):
        """Returns a callable mapping an (1, H, W, 3) float32 batch to class scores."""
        if not os.path.exists(path):
            raise ClassifierUnavailableError(f"Model not found at: {path}")
        try:
            if path.endswith('.onnx'):
                import onnxruntime as ort
                session = ort.InferenceSession(path, providers=['CPUExecutionProvider'])
                input_name = session.get_inputs()[0].name
                model = lambda batch: session.run(None, {input_name: batch})[0]
            else:
                from tensorflow.keras.models import load_model
                keras_model = load_model(path)
                model = lambda batch: keras_model.predict(batch, verbose=0)
        except Exception as e:
            raise ClassifierUnavailableError(f"Could not load model from {path}: {e}") from e
        logger.info("Loaded emotion model from %s", path)
        return model

    def preprocess(self, face_crop):
        """RGB crop -> (1, img_size, img_size, 3) float32 batch scaled to [0, 1]."""
        face_crop_resized = cv2.resize(face_crop, (self.img_size, self.img_size))
        face_crop_normalized = face_crop_resized.astype(np.float32) / 255.0
        return np.expand_dims(face_crop_normalized, axis=0)

    def analyze_face(self, face_crop):
        """
        Predict emotion probabilities for an RGB face region.

        Args:
            face_crop (numpy.ndarray): RGB face image (3 channels)

        Returns:
            dict: {emotion: probability} or None on error
        """
        try:
            predictions = self.model(self.preprocess(face_crop))
            # Batch size is 1
            prediction_values = np.asarray(predictions)[0]

            return {
                self.emotion_labels[i]: float(prediction_values[i])
                for i in range(len(self.emotion_labels))
            }
        except Exception as e:
            logger.warning("Face analysis failed: %s", e)
            return None

    def predict_label(self, face_crop):
        """Arg-max label for a face crop, or None if analysis failed."""
        predicted = self.analyze_face(face_crop)
        if not predicted:
            return None
        label, _ = max(predicted.items(), key=lambda item: item[1])
        return label

    def predict_image_file(self, image_path):
        """Classify a whole image file. Returns (label, probabilities)."""
        frame = cv2.imread(image_path)
        if frame is None:
            raise IOError(f"Could not read image: {image_path}")
        predicted = self.analyze_face(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if not predicted:
            return None, None
        label, _ = max(predicted.items(), key=lambda item: item[1])
        return label, predicted
