"""Camera backends and factory for the scene watch sensor.

Provides a minimal interface to either Picamera2 (CSI cameras) or OpenCV's
VideoCapture (V4L2 devices like USB webcams). Frames are returned as BGR
uint8 NumPy arrays compatible with OpenCV; `read()` returns None when no frame
is available so the capture loop can back off.
"""

import logging
from typing import Optional, Tuple  # Type hints for clarity

import numpy as np  # Frame arrays

from .config import Config  # Global configuration

logger = logging.getLogger(__name__)


class BaseCamera:
    """Abstract camera interface returning BGR frames.

    Subclasses must implement `start()`, `read()`, and `stop()`.
    """

    def start(self) -> None:
        """Initialize and start the camera stream."""
        raise NotImplementedError

    def read(self) -> Optional[np.ndarray]:
        """Read a single BGR frame.

        Returns:
          A NumPy array in BGR order, or None if a frame is not available.
        """
        raise NotImplementedError

    def stop(self) -> None:
        """Stop and release camera resources."""
        pass


class PiCamera2Wrapper(BaseCamera):
    """PiCamera2-based camera backend for CSI-connected camera modules."""

    def __init__(self, size: Tuple[int, int]) -> None:
        """Create a camera with a given frame size.

        Args:
          size: `(width, height)` capture resolution.
        """
        self.size = size
        self.picam2 = None
        self._started = False

    def start(self) -> None:
        """Configure and start Picamera2 streaming."""
        from picamera2 import Picamera2  # Imported lazily to avoid hard dependency

        self.picam2 = Picamera2()
        w, h = self.size
        # libcamera's RGB888 is laid out B,G,R in memory, which is what OpenCV expects
        config = self.picam2.create_still_configuration(
            main={"size": (w, h), "format": "RGB888"}
        )
        self.picam2.configure(config)
        self.picam2.start()
        self._started = True

    def read(self) -> Optional[np.ndarray]:
        """Capture a frame and return it in BGR order."""
        if not self._started:
            return None
        arr = self.picam2.capture_array("main")
        if arr is None:
            return None
        return arr[:, :, :3]

    def stop(self) -> None:
        """Stop streaming and release resources."""
        try:
            if self.picam2:
                self.picam2.stop()
                self.picam2.close()
        except Exception as e:
            logger.warning("Picamera2 shutdown error: %s", e)
        self._started = False


class Cv2V4L2Camera(BaseCamera):
    """OpenCV VideoCapture backend for V4L2 devices (e.g., USB webcams)."""

    def __init__(self, index: int, size: Tuple[int, int], fps: int) -> None:
        """Create a V4L2 camera.

        Args:
          index: V4L2 device index (e.g., 0 for /dev/video0).
          size: `(width, height)` capture resolution.
          fps: Requested frames per second.
        """
        import cv2  # Imported here to avoid global import cost if unused

        self.cv2 = cv2
        self.index = index
        self.size = size
        self.fps = fps
        self.cap = None

    def start(self) -> None:
        """Open the V4L2 device and set basic properties.

        Raises:
          RuntimeError: if the device cannot be opened.
        """
        self.cap = self.cv2.VideoCapture(self.index)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise RuntimeError(f"cannot open video device {self.index}")
        w, h = self.size
        self.cap.set(self.cv2.CAP_PROP_FRAME_WIDTH, w)
        self.cap.set(self.cv2.CAP_PROP_FRAME_HEIGHT, h)
        self.cap.set(self.cv2.CAP_PROP_FPS, self.fps)

    def read(self) -> Optional[np.ndarray]:
        """Grab a frame from the V4L2 device."""
        if self.cap is None:
            return None
        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame  # Frame is already BGR

    def stop(self) -> None:
        """Release the V4L2 device."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None


def make_camera() -> BaseCamera:
    """Factory to create the appropriate camera backend based on config.

    Returns:
      An instance of `BaseCamera` using either Picamera2 or V4L2.
    """
    size = (Config.FRAME_WIDTH, Config.FRAME_HEIGHT)
    backend = Config.CAMERA_BACKEND
    if backend == "picamera2":
        return PiCamera2Wrapper(size=size)
    if backend == "v4l2":
        return Cv2V4L2Camera(index=Config.CAMERA_INDEX, size=size, fps=Config.CAPTURE_FPS)

    # Auto: try Picamera2 first, fall back to V4L2
    try:
        import importlib  # Dynamic import to test availability

        importlib.import_module("picamera2")  # Raises if unavailable
        return PiCamera2Wrapper(size=size)
    except ImportError:
        return Cv2V4L2Camera(index=Config.CAMERA_INDEX, size=size, fps=Config.CAPTURE_FPS)
