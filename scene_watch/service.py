"""Background capture/detection service for the scene watch sensor."""

import dataclasses
import logging
import threading
from typing import List, Optional

import numpy as np

from .camera import BaseCamera, make_camera
from .config import Config
from .dispatcher import ActionDispatcher, ServiceState
from .storage import FrameStore

logger = logging.getLogger(__name__)


class SceneWatchService:
    """Owns the camera, the detection loop thread, and the latest-frame cache."""

    def __init__(self, camera: Optional[BaseCamera] = None, dispatcher: Optional[ActionDispatcher] = None) -> None:
        self.config = Config
        self.camera: BaseCamera = camera or make_camera()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._frame_lock = threading.Lock()
        self._latest_frame: Optional[np.ndarray] = None
        self.dispatcher = dispatcher or ActionDispatcher(
            self.camera,
            store=FrameStore(),
            sleep=self._stop.wait,
            frame_sink=self._remember_frame,
        )
        self.store: FrameStore = self.dispatcher.store

    # Public API
    def start(self) -> None:
        """Start background thread (camera starts inside thread)."""
        self._thread = threading.Thread(target=self._run, name="scene-watch", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Request shutdown and release camera resources."""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)
        self.camera.stop()

    def join(self) -> None:
        """Block until the worker thread exits."""
        if self._thread is not None:
            self._thread.join()

    def get_latest_frame(self) -> Optional[np.ndarray]:
        """Return a copy of the most recent frame, or None."""
        with self._frame_lock:
            if self._latest_frame is None:
                return None
            return self._latest_frame.copy()

    def get_reference_frame(self) -> Optional[np.ndarray]:
        """Return a copy of the baseline frame, or None before the first capture."""
        ref = self.dispatcher.reference.get()
        return None if ref is None else ref.copy()

    def get_status(self) -> ServiceState:
        """Return a copy of the current service state.

        The worker keeps mutating its own instance; the copy is stable for the caller.
        """
        st = self.dispatcher.state
        return dataclasses.replace(st, window=list(st.window))

    def list_latest_images(self, limit: int) -> List[str]:
        """List newest saved images up to `limit` (absolute paths)."""
        return self.store.list_images()[:limit]

    # Internal
    def _remember_frame(self, frame: np.ndarray) -> None:
        with self._frame_lock:
            self._latest_frame = frame.copy()

    def _run(self) -> None:
        """Worker: start the camera (retrying), then run detection cycles until stopped."""
        while not self._stop.is_set():
            try:
                self.camera.start()
                logger.info("Camera started (backend=%s)", self.config.CAMERA_BACKEND)
                break
            except Exception as e:
                logger.error("Camera start failed: %s", e)
                self._stop.wait(self.dispatcher.retry_delay)
        self.dispatcher.run_forever(self._stop)
