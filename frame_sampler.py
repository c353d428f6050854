# frame_sampler.py
import logging
import threading

import cv2
import mss
import numpy as np

from errors import CaptureAcquisitionError

logger = logging.getLogger(__name__)

SCREEN_SOURCE = "screen"


class VideoCaptureSource:
    """OpenCV capture (webcam index, video file or stream URL) yielding RGB frames."""

    def __init__(self, source=0):
        self.source = source
        self.cap = None

    def open(self):
        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            cap.release()
            raise CaptureAcquisitionError(f"Could not open capture source {self.source!r}")
        self.cap = cap

    def read(self):
        ret, frame = self.cap.read()
        if not ret:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class ScreenCaptureSource:
    """
    Screen grab of one monitor through mss, yielding RGB frames.

    Monitor 1 is the primary screen, 0 the union of all screens. An mss
    handle belongs to the thread that created it, so open() only checks the
    monitor and read() creates the grabber on the sampling thread.
    """

    def __init__(self, monitor=1, grabber_factory=mss.mss):
        self.monitor = monitor
        self.grabber_factory = grabber_factory
        self.region = None
        self._sct = None

    def open(self):
        try:
            sct = self.grabber_factory()
        except Exception as e:
            raise CaptureAcquisitionError(f"Could not access the screen: {e}") from e
        try:
            monitors = sct.monitors
            if not 0 <= self.monitor < len(monitors):
                raise CaptureAcquisitionError(
                    f"No monitor {self.monitor} (found {len(monitors) - 1})"
                )
            self.region = dict(monitors[self.monitor])
        finally:
            sct.close()

    def read(self):
        if self.region is None:
            return None
        if self._sct is None:
            self._sct = self.grabber_factory()
        shot = np.asarray(self._sct.grab(self.region))
        return cv2.cvtColor(shot, cv2.COLOR_BGRA2RGB)

    def release(self):
        if self._sct is not None:
            self._sct.close()
            self._sct = None
        self.region = None


def make_capture_source(source):
    """"screen" or "screen:<n>" grabs a monitor; anything else goes to OpenCV."""
    if isinstance(source, str) and source.startswith(SCREEN_SOURCE):
        _, _, monitor = source.partition(":")
        return ScreenCaptureSource(int(monitor) if monitor else 1)
    return VideoCaptureSource(source)


class FrameSampler:
    """
    Cancellable periodic task over a capture source.

    Every tick reads one frame and hands it to ``on_frame`` (preview); every
    ``frame_delay``-th frame (0, N, 2N, ...) also goes to ``on_sample``.
    The capture is acquired in start() and released by the sampling thread
    when it exits; start() and stop() are no-ops when already in the
    requested state.
    """

    def __init__(self, source_factory, on_sample, on_frame=None, frame_delay=5,
                 tick_interval=1 / 30, retry_interval=0.5):
        if frame_delay < 1:
            raise ValueError("frame_delay must be >= 1")
        self.source_factory = source_factory
        self.on_sample = on_sample
        self.on_frame = on_frame
        self.frame_delay = frame_delay
        self.tick_interval = tick_interval
        self.retry_interval = retry_interval

        self.stop_event = threading.Event()
        self.thread = None
        self.source = None
        self._lock = threading.Lock()

    @property
    def running(self):
        return self.thread is not None

    def start(self):
        with self._lock:
            if self.thread is not None:
                return
            source = self.source_factory()
            try:
                source.open()
                self.stop_event = threading.Event()
                thread = threading.Thread(
                    target=self._sampling_loop, args=(source, self.stop_event),
                    name="frame-sampler", daemon=True
                )
                thread.start()
            except Exception:
                source.release()
                raise
            self.source, self.thread = source, thread
            logger.info("Frame sampler started (every %d frames)", self.frame_delay)

    def stop(self, timeout=2.0):
        with self._lock:
            if self.thread is None:
                return
            self.stop_event.set()
            thread = self.thread
            self.thread, self.source = None, None
            if thread is threading.current_thread():
                # Loop exits after this tick and releases the capture itself
                return
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Sampler thread did not stop within %.1fs; capture is released when it exits", timeout)
            else:
                logger.info("Frame sampler stopped, capture released.")

    def _sampling_loop(self, source, stop_event):
        tick = 0
        read_failed = False
        try:
            # wait() doubles as the cancellable sleep between ticks
            while not stop_event.is_set():
                try:
                    frame = source.read()
                    reason = "no frame"
                except Exception as e:
                    frame = None
                    reason = e

                if frame is None:
                    if not read_failed:
                        logger.warning("Could not read frame from capture source (%s); retrying every %.1fs.",
                                       reason, self.retry_interval)
                        read_failed = True
                    stop_event.wait(self.retry_interval)
                    continue
                if read_failed:
                    logger.info("Capture source is delivering frames again.")
                    read_failed = False

                if self.on_frame is not None:
                    self.on_frame(frame)
                if tick % self.frame_delay == 0 and not stop_event.is_set():
                    try:
                        self.on_sample(frame)
                    except Exception:
                        logger.exception("Frame sample handler failed")
                tick += 1
                stop_event.wait(self.tick_interval)
        finally:
            source.release()
