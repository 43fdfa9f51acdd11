"""
Pytest configuration and shared fixtures.
"""

import os

import numpy as np
import pytest

from scene_watch.camera import BaseCamera


def solid_frame(bgr, size=(64, 48)):
    """A uniform BGR frame of `size` (width, height)."""
    w, h = size
    frame = np.zeros((h, w, 3), dtype=np.uint8)
    frame[:, :] = bgr
    return frame


def striped_frame(size=(64, 48)):
    """A frame with several distinct colour bands."""
    w, h = size
    frame = np.zeros((h, w, 3), dtype=np.uint8)
    colors = [(200, 40, 40), (40, 200, 40), (40, 40, 200), (180, 180, 40)]
    band = w // len(colors)
    for i, c in enumerate(colors):
        frame[:, i * band:(i + 1) * band] = c
    return frame


class ScriptedCamera(BaseCamera):
    """Camera that returns a fixed sequence of frames (None = unavailable)."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.reads = 0

    def start(self):
        pass

    def read(self):
        self.reads += 1
        if not self.frames:
            return None
        return self.frames.pop(0)


class ScriptedScorer:
    """Scorer returning pre-set scores in order, recording its inputs."""

    def __init__(self, scores):
        self.scores = list(scores)
        self.calls = []

    def score(self, reference, candidate):
        self.calls.append((reference, candidate))
        return self.scores.pop(0)


class RecordingStore:
    def __init__(self, directory="/tmp/sw-test", fail=False):
        self.directory = directory
        self.fail = fail
        self.saved = []

    def path_for(self, when=None):
        return os.path.join(self.directory, "alert_%d.jpg" % int(when or 0))

    def save(self, frame, path):
        self.saved.append(path)
        if self.fail:
            raise RuntimeError("disk full")
        return path

    def list_images(self):
        return list(reversed(self.saved))


class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def notify(self, to_addr, from_addr, subject, body):
        self.sent.append((to_addr, from_addr, subject, body))
        if self.fail:
            raise RuntimeError("mta down")


class RecordingUploader:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def upload(self, credentials, path):
        self.uploads.append((credentials, path))
        if self.fail:
            raise RuntimeError("network down")


@pytest.fixture
def collaborators():
    """Recording store/notifier/uploader triple, with a shared call log."""
    log = []
    store, notifier, uploader = RecordingStore(), RecordingNotifier(), RecordingUploader()

    orig_save, orig_notify, orig_upload = store.save, notifier.notify, uploader.upload

    def save(frame, path):
        log.append("save")
        return orig_save(frame, path)

    def notify(*args):
        log.append("notify")
        return orig_notify(*args)

    def upload(*args):
        log.append("upload")
        return orig_upload(*args)

    store.save, notifier.notify, uploader.upload = save, notify, upload
    return store, notifier, uploader, log
