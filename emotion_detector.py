# emotion_detector.py
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from enum import Enum

from config import Config
from database.session_item import build_session
from emotion_aggregator import EmotionAggregator
from errors import CaptureAcquisitionError, PersistenceError
from face_locator import crop_face
from frame_sampler import FrameSampler, make_capture_source
from session_rater import rate

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"


class EmotionDetector:
    """
    Owns the session state: lifecycle, capture, tally, saved sessions and the
    warning shown to the user.

    Sampled frames are searched for faces on the sampler thread; each face is
    then classified on a worker pool and counted as soon as its result arrives.
    """

    def __init__(self, face_locator, face_analyzer, store, config=None,
                 sampler_factory=None, clock=time.monotonic):
        self.config = config or Config()
        self.face_locator = face_locator  # None when the face detector failed to load
        self.face_analyzer = face_analyzer  # None when the model failed to load
        self.store = store
        self.clock = clock

        self.aggregator = EmotionAggregator()
        self.state = SessionState.IDLE
        self.session_name = ""
        self.sessions = []

        # --- Shared data (sampler thread -> UI) ---
        self.latest_frame = None
        self.latest_boxes = []
        self.frame_lock = threading.Lock()
        self.state_lock = threading.Lock()

        # --- Warnings ---
        self._warning = None
        self._warning_expires_at = None
        self._persistent_warning = None
        if self.face_locator is None:
            self._persistent_warning = "Face detector is unavailable; no emotions will be recorded."
        elif self.face_analyzer is None:
            self._persistent_warning = "Emotion model is unavailable; no emotions will be recorded."

        # --- Classification workers ---
        self.executor = ThreadPoolExecutor(
            max_workers=self.config.classifier_workers, thread_name_prefix="classifier"
        )
        self._pending = set()
        self._pending_lock = threading.Lock()

        if sampler_factory is None:
            sampler_factory = self._default_sampler
        self.sampler = sampler_factory(self._on_sample, self._on_frame)

        self.load_sessions()

    def _default_sampler(self, on_sample, on_frame):
        return FrameSampler(
            source_factory=lambda: make_capture_source(self.config.capture_source),
            on_sample=on_sample,
            on_frame=on_frame,
            frame_delay=self.config.frame_delay,
            tick_interval=self.config.tick_interval,
        )

    # --- Warnings ---
    def show_warning(self, message, transient=True):
        logger.warning(message)
        self._warning = message
        self._warning_expires_at = self.clock() + self.config.warning_timeout if transient else None

    @property
    def warning(self):
        """Current banner text: a live transient warning, else the persistent one."""
        if self._warning is not None:
            if self._warning_expires_at is None or self.clock() < self._warning_expires_at:
                return self._warning
            self._warning = None
            self._warning_expires_at = None
        return self._persistent_warning

    # --- Sampler callbacks (sampler thread) ---
    def _on_frame(self, frame):
        with self.frame_lock:
            self.latest_frame = frame

    def _on_sample(self, frame):
        if self.face_analyzer is None or self.face_locator is None:
            return
        boxes = self.face_locator.locate_faces(frame)
        with self.frame_lock:
            self.latest_boxes = boxes
        for box in boxes:
            face_crop = crop_face(frame, box)
            if face_crop is None:
                continue
            self._submit_classification(face_crop.copy())

    def _submit_classification(self, face_crop):
        future = self.executor.submit(self._classify_face, face_crop)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _discard_pending(self, future):
        with self._pending_lock:
            self._pending.discard(future)

    def _classify_face(self, face_crop):
        try:
            label = self.face_analyzer.predict_label(face_crop)
        except Exception:
            logger.exception("Classification failed")
            return None
        if label is not None:
            self.aggregator.record_detection(label)
        return label

    def _drain_pending(self):
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            _, not_done = wait(pending, timeout=self.config.drain_timeout)
            if not_done:
                logger.warning("%d classifications still running at session end", len(not_done))

    def get_latest_data(self):
        """Latest preview frame (copy), face boxes and live tally (thread-safe)."""
        frame = None
        with self.frame_lock:
            if self.latest_frame is not None:
                frame = self.latest_frame.copy()
            boxes = list(self.latest_boxes)
        return frame, boxes, self.current_tally()

    # --- Exposed surface ---
    def current_tally(self):
        return self.aggregator.snapshot()

    def start_session(self, name):
        """Idle -> Recording. Returns False (with a warning) if the start is rejected."""
        name = (name or "").strip()
        with self.state_lock:
            if not name:
                self.show_warning("Please enter a session name before starting.")
                return False
            if self.state is not SessionState.IDLE:
                logger.info("Start ignored: session already %s", self.state.value)
                return False

            self.aggregator.reset()
            try:
                self.sampler.start()
            except CaptureAcquisitionError as e:
                self.sampler.stop()
                self.state = SessionState.IDLE
                self.show_warning(f"Failed to access the capture source. Please check your permissions. ({e})")
                return False

            self.session_name = name
            self.state = SessionState.RECORDING
            logger.info("Recording session %r", name)
            return True

    def stop_session(self):
        """Recording -> Finalizing -> Idle. Returns the finished SessionItem, or None if not recording."""
        with self.state_lock:
            if self.state is not SessionState.RECORDING:
                return None
            self.state = SessionState.FINALIZING
            try:
                self.sampler.stop()
                self._drain_pending()
                tally = self.aggregator.snapshot()
                session = build_session(self.session_name, tally, rate(tally), ordinal=len(self.sessions) + 1)
                logger.info("Session %r finished: %s, rating %d", session.name, tally.to_dict(), session.rating)

                try:
                    session = self.store.save(session)
                except PersistenceError as e:
                    # Unsaved sessions go back to the caller but are not listed
                    self.show_warning(f"Could not save session {session.name!r}.")
                    logger.error("%s", e)
                else:
                    self.sessions.append(session)
                return session
            finally:
                self.session_name = ""
                with self.frame_lock:
                    self.latest_boxes = []
                self.state = SessionState.IDLE

    def delete_session(self, session_id):
        """Removes the session from the list only after the store confirms."""
        try:
            deleted = self.store.delete(session_id)
        except PersistenceError as e:
            logger.error("%s", e)
            deleted = False
        if not deleted:
            self.show_warning(f"Could not delete session #{session_id}.")
            return False
        self.sessions = [s for s in self.sessions if s.id != session_id]
        return True

    def load_sessions(self):
        try:
            self.sessions = self.store.list_all()
        except PersistenceError as e:
            logger.error("%s", e)
            self.show_warning("Could not load saved sessions.")
            self.sessions = []
        return self.sessions

    def cleanup(self):
        """Stop recording (if any) and shut the worker pool down."""
        if self.state is SessionState.RECORDING:
            self.stop_session()
        self.sampler.stop()
        self.executor.shutdown(wait=True)
        if hasattr(self.face_locator, "close"):
            self.face_locator.close()


