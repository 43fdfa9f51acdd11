"""Scene-change detection core (histogram correlation against a fixed baseline).

Defines the baseline holder, the hue/saturation histogram scorer, the
moving-average window over recent scores, and the alert decision. Everything
here is free of I/O so the capture loop can own it and tests can drive it with
synthetic frames.
"""

from collections import deque
from typing import List, Optional, Tuple  # Type hints

import cv2  # OpenCV
import numpy as np  # Arrays

from .config import Config  # Tunable detector parameters


class FrameShapeError(ValueError):
    """Raised when a frame is not a 3-channel image or shapes do not match."""


def _check_frame(frame: np.ndarray, what: str) -> None:
    if not isinstance(frame, np.ndarray):
        raise FrameShapeError(f"{what} frame is {type(frame).__name__}, expected numpy.ndarray")
    if frame.ndim != 3 or frame.shape[2] != 3 or frame.size == 0:
        raise FrameShapeError(f"{what} frame has shape {frame.shape}, expected (H, W, 3) BGR")
    if frame.dtype != np.uint8:
        raise FrameShapeError(f"{what} frame has dtype {frame.dtype}, expected uint8")


class ReferenceFrameManager:
    """Holds the single baseline frame every later frame is compared against.

    The baseline is adopted once, from the first frame offered, and is never
    replaced for the lifetime of the manager.
    """

    def __init__(self) -> None:
        self._frame: Optional[np.ndarray] = None

    @property
    def is_set(self) -> bool:
        return self._frame is not None

    def set_if_absent(self, frame: np.ndarray) -> bool:
        """Adopt `frame` as the baseline unless one exists.

        Returns:
          True if the frame became the baseline; False if one was already set.
        """
        if self._frame is not None:
            return False
        _check_frame(frame, "reference")
        self._frame = frame.copy()  # capture buffers may be reused by the driver
        return True

    def get(self) -> Optional[np.ndarray]:
        """Return the baseline frame, or None if it has not been set yet."""
        return self._frame


class SimilarityScorer:
    """Correlation of normalized hue/saturation histograms.

    Both frames are converted BGR->HSV so brightness-only changes weigh less,
    then a 2D H-S histogram is built for each, scaled to [0, 1] with MINMAX
    normalization, and compared with `cv2.HISTCMP_CORREL`. A score of 1.0
    means identical colour distributions; values drop toward 0 (and can go
    slightly negative) as the scene changes.
    """

    def __init__(
        self,
        h_bins: Optional[int] = None,
        s_bins: Optional[int] = None,
        h_range: Optional[Tuple[int, int]] = None,
        s_range: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.h_bins = int(Config.HIST_H_BINS if h_bins is None else h_bins)
        self.s_bins = int(Config.HIST_S_BINS if s_bins is None else s_bins)
        self.h_range = tuple(h_range or Config.HIST_H_RANGE)
        self.s_range = tuple(s_range or Config.HIST_S_RANGE)
        if self.h_bins < 1 or self.s_bins < 1:
            raise ValueError("histogram bin counts must be positive")

    def histogram(self, frame_bgr: np.ndarray) -> np.ndarray:
        """Return the MINMAX-normalized H-S histogram of a BGR frame."""
        _check_frame(frame_bgr, "input")
        hsv = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2HSV)
        hist = cv2.calcHist(
            [hsv],
            [0, 1],
            None,
            [self.h_bins, self.s_bins],
            [self.h_range[0], self.h_range[1], self.s_range[0], self.s_range[1]],
            accumulate=False,
        )
        cv2.normalize(hist, hist, 0, 1, cv2.NORM_MINMAX)
        return hist

    def score(self, reference: np.ndarray, candidate: np.ndarray) -> float:
        """Compare two frames of identical shape.

        Raises:
          FrameShapeError: if either frame is malformed or the shapes differ.
        """
        _check_frame(reference, "reference")
        _check_frame(candidate, "candidate")
        if reference.shape != candidate.shape:
            raise FrameShapeError(
                f"frame shape {candidate.shape} does not match reference {reference.shape}"
            )
        h_ref = self.histogram(reference)
        h_cur = self.histogram(candidate)
        return float(cv2.compareHist(h_ref, h_cur, cv2.HISTCMP_CORREL))


class SmoothingWindow:
    """Bounded history of the most recent scores with a running mean.

    Holds at most `size` samples; pushing beyond that evicts the oldest.
    """

    def __init__(self, size: Optional[int] = None) -> None:
        size = Config.SMOOTHING_WINDOW if size is None else int(size)
        if size < 1:
            raise ValueError(f"smoothing window size must be >= 1, got {size}")
        self.size = size
        self._samples: deque = deque(maxlen=size)

    def __len__(self) -> int:
        return len(self._samples)

    def push(self, sample: float) -> None:
        self._samples.append(float(sample))

    def mean(self) -> Optional[float]:
        """Arithmetic mean of the held samples, or None when empty."""
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    def values(self) -> List[float]:
        """Held samples, oldest first."""
        return list(self._samples)

    def clear(self) -> None:
        self._samples.clear()


def should_trigger(mean_score: Optional[float], threshold: float) -> bool:
    """Return True when the smoothed similarity is strictly below `threshold`."""
    if mean_score is None:
        return False
    return mean_score < threshold
