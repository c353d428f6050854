import numpy as np

from database.session_item import build_session
from emotion_aggregator import EmotionTally
from emotion_detector import SessionState
from tests.conftest import FakeAnalyzer, FakeLocator, FakeStore, make_frame


def test_empty_name_is_rejected_and_tally_kept(make_detector):
    detector = make_detector()
    assert detector.start_session("Standup")
    detector.sampler.emit()
    detector.stop_session()
    detector.aggregator.record_detection("Sad")
    before = detector.current_tally()

    assert not detector.start_session("   ")
    assert not detector.start_session("")

    assert detector.state is SessionState.IDLE
    assert detector.current_tally() == before
    assert detector.warning == "Please enter a session name before starting."
    assert detector.sampler.starts == 1


def test_full_session_lifecycle(make_detector):
    store = FakeStore()
    detector = make_detector(locator=FakeLocator(boxes=[(0, 0, 20, 20), (30, 30, 20, 20)]), store=store)

    assert detector.start_session("Weekly sync")
    assert detector.state is SessionState.RECORDING
    for _ in range(3):
        detector.sampler.emit()

    session = detector.stop_session()

    assert detector.state is SessionState.IDLE
    assert not detector.sampler.running
    assert session.name == "Weekly sync"
    assert session.emotion_data == EmotionTally(happy=6, sad=0, angry=0)
    assert session.rating == 5
    assert session.id == 1
    assert detector.sessions == [session]
    assert store.items == [session]
    assert detector.session_name == ""


def test_restart_begins_at_zero(make_detector):
    detector = make_detector()
    detector.start_session("First")
    detector.sampler.emit()
    detector.sampler.emit()
    first = detector.stop_session()

    detector.start_session("Second")
    detector._drain_pending()

    assert first.emotion_data.total == 2
    assert detector.current_tally() == EmotionTally(0, 0, 0)


def test_start_while_recording_is_ignored(make_detector):
    detector = make_detector()
    detector.start_session("One")
    detector.sampler.emit()
    detector._drain_pending()

    assert not detector.start_session("Two")
    assert detector.current_tally().happy == 1
    assert detector.session_name == "One"


def test_stop_when_idle_returns_none(make_detector):
    detector = make_detector()
    assert detector.stop_session() is None
    assert detector.sampler.stops == 0


def test_capture_failure_returns_to_idle_with_transient_warning(make_detector, clock):
    detector = make_detector(fail_start=True)

    assert not detector.start_session("Demo")

    assert detector.state is SessionState.IDLE
    assert not detector.sampler.running
    assert "capture source" in detector.warning
    clock.now += 3.5
    assert detector.warning is None


def test_missing_classifier_is_a_persistent_warning(make_detector, clock):
    detector = make_detector(analyzer=None)

    assert detector.start_session("No model")
    detector.sampler.emit()
    session = detector.stop_session()

    assert session.emotion_data.total == 0
    assert session.rating == 1
    clock.now += 60
    assert "unavailable" in detector.warning


def test_unrecognized_labels_are_not_counted(make_detector):
    detector = make_detector(analyzer=FakeAnalyzer(label="Neutral"))
    detector.start_session("Noise")
    detector.sampler.emit()

    assert detector.stop_session().emotion_data.total == 0


def test_frames_without_faces_add_nothing(make_detector):
    detector = make_detector(locator=FakeLocator(boxes=[]))
    detector.start_session("Empty room")
    detector.sampler.emit()

    frame, boxes, tally = detector.get_latest_data()

    assert frame is not None
    assert boxes == []
    assert tally.total == 0
    detector.stop_session()


def test_latest_frame_is_a_copy(make_detector):
    detector = make_detector()
    detector.start_session("Preview")
    source = make_frame(value=10)
    detector.sampler.emit(source)

    frame, boxes, _ = detector.get_latest_data()
    frame[:] = 0

    assert np.all(detector.latest_frame == 10)
    assert boxes == [(10, 10, 40, 40)]
    detector.stop_session()


def test_create_failure_keeps_list_unchanged(make_detector):
    detector = make_detector(store=FakeStore(fail_create=True))
    detector.start_session("Unsaved")
    detector.sampler.emit()

    session = detector.stop_session()

    assert session.id is None
    assert session.emotion_data.happy == 1
    assert detector.sessions == []
    assert detector.state is SessionState.IDLE
    assert "Could not save" in detector.warning


def test_delete_session(make_detector):
    existing = [build_session(f"s{i}", EmotionTally(1, 0, 0), 5, ordinal=i) for i in (1, 2)]
    store = FakeStore()
    for item in existing:
        store.create(item)
    detector = make_detector(store=store)
    assert [s.id for s in detector.sessions] == [1, 2]

    assert detector.delete_session(1)
    assert [s.id for s in detector.sessions] == [2]

    assert not detector.delete_session(42)
    assert [s.id for s in detector.sessions] == [2]


def test_delete_failure_leaves_session_visible(make_detector):
    store = FakeStore()
    store.create(build_session("Keep me", EmotionTally(), 1, ordinal=1))
    detector = make_detector(store=store)
    store.fail_delete = True

    assert not detector.delete_session(1)
    assert [s.name for s in detector.sessions] == ["Keep me"]
    assert "Could not delete" in detector.warning


def test_load_failure_starts_with_empty_list(make_detector):
    detector = make_detector(store=FakeStore(fail_list=True))
    assert detector.sessions == []
    assert detector.warning == "Could not load saved sessions."


def test_cleanup_stops_active_session(make_detector):
    store = FakeStore()
    detector = make_detector(store=store)
    detector.start_session("Closing")
    detector.sampler.emit()

    detector.cleanup()

    assert detector.state is SessionState.IDLE
    assert not detector.sampler.running
    assert [s.name for s in store.items] == ["Closing"]


def test_missing_face_detector_is_a_persistent_warning(make_detector, clock):
    detector = make_detector(locator=None)

    assert detector.start_session("No detector")
    detector.sampler.emit()
    session = detector.stop_session()

    assert session.emotion_data.total == 0
    clock.now += 60
    assert detector.warning.startswith("Face detector is unavailable")
    detector.cleanup()
