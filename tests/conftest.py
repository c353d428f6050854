from dataclasses import replace

import numpy as np
import pytest

from config import Config
from errors import CaptureAcquisitionError, PersistenceError


def make_frame(h=120, w=160, value=128):
    return np.full((h, w, 3), value, dtype=np.uint8)


class FakeSource:
    """Capture source serving a fixed number of frames, then signalling the end."""

    def __init__(self, n_frames=None, fail_open=False, stop_event=None):
        self.n_frames = n_frames
        self.fail_open = fail_open
        self.stop_event = stop_event
        self.reads = 0
        self.opened = 0
        self.released = 0

    def open(self):
        if self.fail_open:
            raise CaptureAcquisitionError("permission denied")
        self.opened += 1

    def read(self):
        if self.n_frames is not None and self.reads >= self.n_frames:
            if self.stop_event is not None:
                self.stop_event.set()
            return None
        self.reads += 1
        return make_frame()

    def release(self):
        self.released += 1


class FakeSampler:
    """Stands in for FrameSampler; frames are pushed with emit()."""

    def __init__(self, on_sample, on_frame, fail_start=False):
        self.on_sample = on_sample
        self.on_frame = on_frame
        self.fail_start = fail_start
        self.running = False
        self.starts = 0
        self.stops = 0

    def start(self):
        if self.running:
            return
        if self.fail_start:
            raise CaptureAcquisitionError("no device")
        self.starts += 1
        self.running = True

    def stop(self):
        if not self.running:
            return
        self.stops += 1
        self.running = False

    def emit(self, frame=None):
        frame = make_frame() if frame is None else frame
        self.on_frame(frame)
        self.on_sample(frame)


class FakeLocator:
    def __init__(self, boxes=((10, 10, 40, 40),)):
        self.boxes = list(boxes)

    def locate_faces(self, frame):
        return list(self.boxes)


class FakeAnalyzer:
    def __init__(self, label="Happy"):
        self.label = label

    def predict_label(self, face_crop):
        return self.label


class FakeStore:
    def __init__(self, sessions=None, fail_create=False, fail_delete=False, fail_list=False):
        self.items = list(sessions or [])
        self.fail_create = fail_create
        self.fail_delete = fail_delete
        self.fail_list = fail_list
        self.next_id = len(self.items) + 1

    def create(self, item):
        if self.fail_create:
            raise PersistenceError("disk full")
        session_id = self.next_id
        self.next_id += 1
        self.items.append(replace(item, id=session_id))
        return session_id

    def save(self, item):
        return replace(item, id=self.create(item))

    def list_all(self):
        if self.fail_list:
            raise PersistenceError("database is locked")
        return list(self.items)

    def delete(self, session_id):
        if self.fail_delete:
            raise PersistenceError("database is locked")
        before = len(self.items)
        self.items = [s for s in self.items if s.id != session_id]
        return len(self.items) < before


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def config():
    return Config(classifier_workers=2, drain_timeout=2.0, warning_timeout=3.0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_detector(config, clock):
    from emotion_detector import EmotionDetector

    created = []

    def _make(locator=FakeLocator(), analyzer=FakeAnalyzer(), store=None, fail_start=False):
        detector = EmotionDetector(
            locator,
            analyzer,
            store if store is not None else FakeStore(),
            config=config,
            sampler_factory=lambda on_sample, on_frame: FakeSampler(on_sample, on_frame, fail_start=fail_start),
            clock=clock,
        )
        created.append(detector)
        return detector

    yield _make
    for detector in created:
        detector.executor.shutdown(wait=True)
