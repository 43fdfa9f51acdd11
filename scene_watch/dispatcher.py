"""Per-cycle orchestration of capture, scoring, smoothing and alert actions."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from .camera import BaseCamera
from .config import Config
from .detector import (
    FrameShapeError,
    ReferenceFrameManager,
    SimilarityScorer,
    SmoothingWindow,
    should_trigger,
)
from .notify import make_notifier
from .storage import FrameStore
from .upload import UploadCredentials, make_uploader

logger = logging.getLogger(__name__)

# Cycle outcomes
NO_FRAME = "no_frame"
REFERENCE_SET = "reference_set"
REJECTED = "rejected"
SCORED = "scored"
ALERTED = "alerted"
SUPPRESSED = "suppressed"


@dataclass
class AlertEvent:
    """A fired trigger: the frame that caused it plus its raw and smoothed scores."""

    frame: np.ndarray
    score: float
    smoothed: float
    ts: float


@dataclass
class CycleResult:
    outcome: str
    score: Optional[float] = None
    smoothed: Optional[float] = None
    event: Optional[AlertEvent] = None


@dataclass
class ServiceState:
    """Observable loop state used by the web API and dashboard."""
    reference_set: bool = False
    total_frames: int = 0
    capture_failures: int = 0
    rejected_frames: int = 0
    last_score: Optional[float] = None
    smoothed_score: Optional[float] = None
    window: List[float] = field(default_factory=list)
    threshold: float = 0.0
    alerting: bool = False
    alerts_count: int = 0
    suppressed_count: int = 0
    saved_images_count: int = 0
    last_alert_ts: float = 0.0
    last_alert_path: str = ""


class ActionDispatcher:
    """Runs one detection cycle at a time and performs alert side effects.

    Each cycle reads one frame. The first usable frame becomes the baseline;
    every later frame is scored against it, the score enters the smoothing
    window, and if the window mean is below the threshold the frame is saved,
    a mail is sent and the saved file is uploaded, in that order and inside
    the cycle. Frames are not read while those actions run.
    """

    def __init__(
        self,
        camera: BaseCamera,
        reference: Optional[ReferenceFrameManager] = None,
        scorer: Optional[SimilarityScorer] = None,
        window: Optional[SmoothingWindow] = None,
        threshold: Optional[float] = None,
        store: Optional[FrameStore] = None,
        notifier=None,
        uploader=None,
        credentials: Optional[UploadCredentials] = None,
        mail_to: Optional[str] = None,
        mail_from: Optional[str] = None,
        mail_subject: Optional[str] = None,
        mail_body: Optional[str] = None,
        interval: Optional[float] = None,
        retry_delay: Optional[float] = None,
        cooldown: Optional[float] = None,
        sleep: Callable[[float], object] = time.sleep,
        clock: Callable[[], float] = time.time,
        frame_sink: Optional[Callable[[np.ndarray], None]] = None,
    ) -> None:
        self.camera = camera
        self.reference = reference or ReferenceFrameManager()
        self.scorer = scorer or SimilarityScorer()
        self.window = SmoothingWindow() if window is None else window
        self.threshold = float(Config.ALERT_THRESHOLD if threshold is None else threshold)
        self.store = store or FrameStore()
        self.notifier = notifier or make_notifier()
        self.uploader = uploader or make_uploader()
        self.credentials = credentials or UploadCredentials(Config.MEGA_EMAIL, Config.MEGA_PASSWORD)
        self.mail_to = Config.MAIL_TO if mail_to is None else mail_to
        self.mail_from = Config.MAIL_FROM if mail_from is None else mail_from
        self.mail_subject = Config.MAIL_SUBJECT if mail_subject is None else mail_subject
        self.mail_body = Config.MAIL_BODY if mail_body is None else mail_body
        self.interval = float(Config.CAPTURE_INTERVAL_SEC if interval is None else interval)
        self.retry_delay = float(Config.CAPTURE_RETRY_SEC if retry_delay is None else retry_delay)
        self.cooldown = float(Config.ALERT_COOLDOWN_SEC if cooldown is None else cooldown)
        self._sleep = sleep
        self._clock = clock
        self._frame_sink = frame_sink
        self._last_alert_ts: Optional[float] = None
        self.state = ServiceState(threshold=self.threshold)

    def run_forever(self, stop_event=None) -> None:
        """Repeat `run_cycle()` until `stop_event` is set (forever if None)."""
        while stop_event is None or not stop_event.is_set():
            try:
                result = self.run_cycle()
            except Exception:
                # Never let detection errors kill the capture loop
                logger.exception("Detection cycle failed")
                self._sleep(self.interval)
                continue
            self._sleep(self.retry_delay if result.outcome == NO_FRAME else self.interval)

    def run_cycle(self) -> CycleResult:
        """Capture, score and decide once; dispatch actions if triggered. Never sleeps."""
        try:
            frame = self.camera.read()
        except Exception as e:
            logger.error("Camera read failed: %s", e)
            frame = None
        if frame is None:
            self.state.capture_failures += 1
            logger.info("No frame available; retrying in %.1fs", self.retry_delay)
            return CycleResult(NO_FRAME)
        self.state.total_frames += 1
        if self._frame_sink is not None:
            self._frame_sink(frame)

        if not self.reference.is_set:
            try:
                self.reference.set_if_absent(frame)
            except FrameShapeError as e:
                self.state.rejected_frames += 1
                logger.warning("Unusable reference frame: %s", e)
                return CycleResult(REJECTED)
            self.state.reference_set = True
            logger.info("Reference frame set (%dx%d)", frame.shape[1], frame.shape[0])
            return CycleResult(REFERENCE_SET)

        try:
            score = self.scorer.score(self.reference.get(), frame)
        except FrameShapeError as e:
            self.state.rejected_frames += 1
            logger.warning("Skipping frame: %s", e)
            return CycleResult(REJECTED)
        self.window.push(score)
        smoothed = self.window.mean()
        self.state.last_score = score
        self.state.smoothed_score = smoothed
        self.state.window = self.window.values()
        logger.debug("score=%.4f smoothed=%.4f", score, smoothed)

        triggered = should_trigger(smoothed, self.threshold)
        self.state.alerting = triggered
        if not triggered:
            return CycleResult(SCORED, score, smoothed)

        now = self._clock()
        if self.cooldown > 0 and self._last_alert_ts is not None and now - self._last_alert_ts < self.cooldown:
            self.state.suppressed_count += 1
            logger.info("Alert suppressed by cooldown (smoothed=%.4f)", smoothed)
            return CycleResult(SUPPRESSED, score, smoothed)

        event = AlertEvent(frame=frame, score=score, smoothed=smoothed, ts=now)
        self.dispatch(event)
        return CycleResult(ALERTED, score, smoothed, event)

    def dispatch(self, event: AlertEvent) -> str:
        """Save, notify and upload for one alert. Returns the intended image path.

        Each step runs regardless of how the previous one went; failures are
        logged and never propagate into the capture loop.
        """
        self._last_alert_ts = event.ts
        self.state.alerts_count += 1
        self.state.last_alert_ts = event.ts
        logger.warning(
            "Scene change detected: smoothed=%.4f score=%.4f threshold=%.2f",
            event.smoothed, event.score, self.threshold,
        )
        path = self.store.path_for(event.ts)
        self.state.last_alert_path = path
        if self._attempt("save", self.store.save, event.frame, path):
            self.state.saved_images_count += 1
        self._attempt(
            "notify", self.notifier.notify,
            self.mail_to, self.mail_from, self.mail_subject, self.mail_body,
        )
        self._attempt("upload", self.uploader.upload, self.credentials, path)
        return path

    @staticmethod
    def _attempt(step: str, fn: Callable, *args) -> bool:
        try:
            fn(*args)
            return True
        except Exception:
            logger.exception("Alert %s step failed", step)
            return False
