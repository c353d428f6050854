# main.py
"""
Meeting Emotion Sense entry point.

    python main.py                       # dashboard on webcam 0
    python main.py --source meeting.mp4  # dashboard on a recorded meeting
    python main.py --screen              # dashboard on the primary screen
    python main.py --image face.jpg      # classify one image and exit
"""
import argparse
import logging

from config import Config
from database.db_utils import SessionStore
from emotion_detector import EmotionDetector
from errors import ClassifierUnavailableError, PersistenceError
from face_analyzer import FaceAnalyzer
from face_locator import FaceLocator

logger = logging.getLogger(__name__)


def build_detector(config):
    """
    Wire up the real collaborators.

    Startup failures never abort: a model or face detector that fails to load
    is left unset (persistent banner), and an unusable database leaves the
    session list empty with a warning.
    """
    try:
        face_analyzer = FaceAnalyzer(config.model_path, config.emotion_labels, config.image_size)
    except ClassifierUnavailableError as e:
        logger.error("%s", e)
        face_analyzer = None

    try:
        face_locator = FaceLocator(
            backend=config.face_backend,
            model_path=config.face_model_path,
            min_detection_confidence=config.min_detection_confidence,
        )
    except ClassifierUnavailableError as e:
        logger.error("%s", e)
        face_locator = None

    try:
        store = SessionStore(config.db_path)
    except PersistenceError as e:
        logger.error("%s", e)
        store = SessionStore(config.db_path, create=False)

    return EmotionDetector(face_locator, face_analyzer, store, config=config)


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Meeting emotion analysis with a session dashboard.")
    ap.add_argument("--source", default="0", help="Capture device index, video file, stream URL or \"screen[:N]\"")
    ap.add_argument("--screen", nargs="?", type=int, const=1, metavar="MONITOR",
                    help="Capture a monitor instead of --source (1 = primary, 0 = all)")
    ap.add_argument("--model", default=Config.model_path, help="Emotion model (.onnx, .keras or .h5)")
    ap.add_argument("--face-backend", choices=("haar", "mediapipe"), default=Config.face_backend)
    ap.add_argument("--face-model", default=Config.face_model_path, help="MediaPipe face detector .tflite")
    ap.add_argument("--frame-delay", type=int, default=Config.frame_delay, help="Classify every Nth frame")
    ap.add_argument("--db", default=Config.db_path, help="sqlite database file")
    ap.add_argument("--image", help="Classify a single image file and exit")
    return ap.parse_args(argv)


def config_from_args(args):
    return Config(
        model_path=args.model,
        face_backend=args.face_backend,
        face_model_path=args.face_model,
        capture_source=args.source if args.screen is None else f"screen:{args.screen}",
        frame_delay=args.frame_delay,
        db_path=args.db,
    )


def classify_image(config, image_path):
    face_analyzer = FaceAnalyzer(config.model_path, config.emotion_labels, config.image_size)
    label, probabilities = face_analyzer.predict_image_file(image_path)
    if label is None:
        print("Could not predict an emotion for this image.")
        return 1
    print(f"Predicted Emotion: {label}")
    for emo, prob in probabilities.items():
        print(f"  {emo}: {prob * 100:.1f}%")
    return 0


# --- Entry point ---
if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    args = parse_args()
    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        raise SystemExit(2)

    if args.image:
        try:
            raise SystemExit(classify_image(config, args.image))
        except (ClassifierUnavailableError, IOError) as e:
            logger.error("%s", e)
            raise SystemExit(1)

    from ttkbootstrap import Style
    from ui_controller import EmotionGUI

    main_detector = None
    try:
        main_detector = build_detector(config)

        style = Style("superhero")
        root = style.master
        gui = EmotionGUI(root, main_detector)

        def update_gui():
            gui.refresh()
            root.after(30, update_gui)

        update_gui()
        root.mainloop()
    except (ValueError, TypeError, RuntimeError, IOError) as e:
        logger.error("Fatal error during startup or run: %s", e)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        if main_detector:
            main_detector.cleanup()
        logger.info("Exited.")
