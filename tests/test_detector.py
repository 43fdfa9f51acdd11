import numpy as np
import pytest

from conftest import solid_frame, striped_frame
from scene_watch.detector import (
    FrameShapeError,
    ReferenceFrameManager,
    SimilarityScorer,
    SmoothingWindow,
    should_trigger,
)


# ---------------------------------------------------------------- reference


def test_reference_is_adopted_once():
    ref = ReferenceFrameManager()
    assert ref.get() is None
    assert not ref.is_set

    first = solid_frame((10, 20, 30))
    second = solid_frame((200, 200, 200))
    assert ref.set_if_absent(first) is True
    assert ref.set_if_absent(second) is False

    assert ref.is_set
    np.testing.assert_array_equal(ref.get(), first)


def test_reference_keeps_private_copy():
    ref = ReferenceFrameManager()
    frame = solid_frame((10, 20, 30))
    ref.set_if_absent(frame)
    frame[:] = 255  # driver reuses the buffer
    assert int(ref.get()[0, 0, 0]) == 10


def test_reference_rejects_grayscale():
    ref = ReferenceFrameManager()
    with pytest.raises(FrameShapeError):
        ref.set_if_absent(np.zeros((48, 64), dtype=np.uint8))
    assert not ref.is_set


# ---------------------------------------------------------------- scorer


def test_frame_compared_to_itself_scores_one():
    scorer = SimilarityScorer()
    frame = striped_frame()
    assert scorer.score(frame, frame) == pytest.approx(1.0)
    assert scorer.score(frame, frame.copy()) == pytest.approx(1.0)


def test_different_colours_score_low():
    scorer = SimilarityScorer()
    blue = solid_frame((255, 0, 0))
    red = solid_frame((0, 0, 255))
    assert scorer.score(blue, red) < 0.7


def test_brightness_only_change_stays_similar():
    scorer = SimilarityScorer()
    frame = striped_frame()
    dimmer = (frame.astype(np.float32) * 0.8).astype(np.uint8)
    assert scorer.score(frame, dimmer) > 0.95


def test_score_is_deterministic():
    scorer = SimilarityScorer()
    rng = np.random.default_rng(7)
    ref = rng.integers(0, 256, size=(48, 64, 3), dtype=np.uint8)
    frames = [rng.integers(0, 256, size=(48, 64, 3), dtype=np.uint8) for _ in range(4)]

    first = [scorer.score(ref, f) for f in frames]
    second = [SimilarityScorer().score(ref, f) for f in frames]
    assert first == second
    assert all(-1.0 <= s <= 1.0 for s in first)


def test_histogram_is_normalized_with_configured_bins():
    scorer = SimilarityScorer(h_bins=50, s_bins=60)
    hist = scorer.histogram(striped_frame())
    assert hist.shape == (50, 60)
    assert float(hist.max()) == pytest.approx(1.0)
    assert float(hist.min()) == pytest.approx(0.0)


def test_mismatched_shapes_are_rejected():
    scorer = SimilarityScorer()
    with pytest.raises(FrameShapeError):
        scorer.score(solid_frame((1, 2, 3), size=(64, 48)), solid_frame((1, 2, 3), size=(32, 24)))


@pytest.mark.parametrize(
    "bad",
    [
        None,
        np.zeros((48, 64), dtype=np.uint8),
        np.zeros((48, 64, 4), dtype=np.uint8),
        np.zeros((48, 64, 3), dtype=np.int64),
    ],
)
def test_malformed_frames_are_rejected(bad):
    scorer = SimilarityScorer()
    with pytest.raises(FrameShapeError):
        scorer.score(solid_frame((1, 2, 3)), bad)


def test_zero_bins_is_invalid():
    with pytest.raises(ValueError):
        SimilarityScorer(h_bins=0)


# ---------------------------------------------------------------- window


def test_window_evicts_oldest():
    window = SmoothingWindow(3)
    for s in [0.9, 0.8, 0.6, 0.95]:
        window.push(s)
    assert window.values() == [0.8, 0.6, 0.95]
    assert window.mean() == pytest.approx(0.78333, abs=1e-4)


@pytest.mark.parametrize("k", [1, 2, 3, 5])
def test_window_mean_covers_only_last_k(k):
    window = SmoothingWindow(k)
    pushes = [0.1 * i for i in range(1, 11)]
    for s in pushes:
        window.push(s)
    assert len(window) == k
    assert window.mean() == pytest.approx(sum(pushes[-k:]) / k)


def test_window_grows_one_per_push_until_full():
    window = SmoothingWindow(3)
    assert window.mean() is None
    for i, s in enumerate([0.5, 0.6, 0.7, 0.8], start=1):
        window.push(s)
        assert len(window) == min(i, 3)


def test_window_clear():
    window = SmoothingWindow(2)
    window.push(0.4)
    window.clear()
    assert len(window) == 0
    assert window.mean() is None


def test_window_size_must_be_positive():
    with pytest.raises(ValueError):
        SmoothingWindow(0)


# ---------------------------------------------------------------- decision


def test_trigger_is_strictly_below_threshold():
    assert should_trigger(0.69, 0.7) is True
    assert should_trigger(0.7, 0.7) is False
    assert should_trigger(0.71, 0.7) is False


def test_empty_window_never_triggers():
    assert should_trigger(None, 0.7) is False
