import random
import threading

from emotion_aggregator import EmotionAggregator, EmotionTally


def test_starts_empty():
    assert EmotionAggregator().snapshot() == EmotionTally(0, 0, 0)


def test_sum_matches_valid_detections_since_reset():
    aggregator = EmotionAggregator()
    aggregator.record_detection("Happy")
    aggregator.reset()

    rng = random.Random(7)
    labels = [rng.choice(["Happy", "Sad", "Angry"]) for _ in range(200)]
    for label in labels:
        assert aggregator.record_detection(label)

    tally = aggregator.snapshot()
    assert tally.total == len(labels)
    assert tally.happy == labels.count("Happy")
    assert tally.angry == labels.count("Angry")


def test_labels_match_case_insensitively():
    aggregator = EmotionAggregator()
    aggregator.record_detection("HAPPY")
    aggregator.record_detection("sad")
    aggregator.record_detection(" Angry ")
    assert aggregator.snapshot().to_dict() == {"happy": 1, "sad": 1, "angry": 1}


def test_unrecognized_labels_are_dropped():
    aggregator = EmotionAggregator()
    aggregator.record_detection("Happy")
    before = aggregator.snapshot()

    assert not aggregator.record_detection("Neutral")
    assert not aggregator.record_detection("")
    assert not aggregator.record_detection(None)
    assert not aggregator.record_detection(3)

    assert aggregator.snapshot() == before


def test_snapshot_does_not_change_with_later_detections():
    aggregator = EmotionAggregator()
    aggregator.record_detection("Sad")
    snap = aggregator.snapshot()
    aggregator.record_detection("Sad")
    assert snap.sad == 1
    assert aggregator.snapshot().sad == 2


def test_concurrent_increments_are_all_counted():
    aggregator = EmotionAggregator()

    def worker(label):
        for _ in range(1000):
            aggregator.record_detection(label)

    threads = [threading.Thread(target=worker, args=(label,)) for label in ("Happy", "Sad", "Angry", "Happy")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert aggregator.snapshot() == EmotionTally(happy=2000, sad=1000, angry=1000)
