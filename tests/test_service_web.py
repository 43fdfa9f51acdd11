import os
import time

import cv2
import numpy as np
import pytest

from conftest import ScriptedCamera, solid_frame, striped_frame
from scene_watch.config import Config
from scene_watch.service import SceneWatchService
from scene_watch.web import create_app


@pytest.fixture(autouse=True)
def quiet_config(monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "SAVE_DIR", str(tmp_path / "captures"))
    monkeypatch.setattr(Config, "MAIL_TO", "")
    monkeypatch.setattr(Config, "MEGA_EMAIL", "")
    monkeypatch.setattr(Config, "MEGA_PASSWORD", "")
    monkeypatch.setattr(Config, "CAPTURE_INTERVAL_SEC", 0.01)
    monkeypatch.setattr(Config, "CAPTURE_RETRY_SEC", 0.01)
    monkeypatch.setattr(Config, "SMOOTHING_WINDOW", 1)
    monkeypatch.setattr(Config, "ALERT_COOLDOWN_SEC", 0.0)


def test_service_thread_sets_reference_and_alerts():
    camera = ScriptedCamera([striped_frame(), striped_frame(), solid_frame((0, 0, 255))])
    service = SceneWatchService(camera=camera)
    service.start()
    deadline = time.time() + 5
    while time.time() < deadline and service.get_status().alerts_count < 1:
        time.sleep(0.01)
    service.stop()

    st = service.get_status()
    assert st.reference_set
    assert st.alerts_count == 1
    assert st.saved_images_count == 1
    assert len(service.list_latest_images(10)) == 1
    assert service.get_reference_frame() is not None


def test_service_retries_camera_start():
    class Flaky(ScriptedCamera):
        def __init__(self, frames):
            super().__init__(frames)
            self.starts = 0

        def start(self):
            self.starts += 1
            if self.starts < 3:
                raise RuntimeError("no device")

    camera = Flaky([striped_frame()])
    service = SceneWatchService(camera=camera)
    service.start()
    deadline = time.time() + 5
    while time.time() < deadline and not service.get_status().reference_set:
        time.sleep(0.01)
    service.stop()
    assert camera.starts == 3
    assert service.get_status().reference_set


def test_latest_frame_is_a_copy():
    frame = striped_frame()
    service = SceneWatchService(camera=ScriptedCamera([frame]))
    service.dispatcher.run_cycle()
    latest = service.get_latest_frame()
    latest[:] = 0
    np.testing.assert_array_equal(service.get_latest_frame(), frame)


@pytest.fixture
def client():
    service = SceneWatchService(camera=ScriptedCamera([striped_frame(), solid_frame((0, 0, 255))]))
    app = create_app(service)
    app.config["TESTING"] = True
    return service, app.test_client()


def test_images_unavailable_before_first_frame(client):
    _, c = client
    assert c.get("/latest.jpg").status_code == 503
    assert c.get("/reference.jpg").status_code == 503


def test_dashboard_and_api_after_alert(client):
    service, c = client
    service.dispatcher.run_cycle()
    service.dispatcher.run_cycle()

    state = c.get("/api/state").get_json()
    assert state["reference_set"] is True
    assert state["alerts_count"] == 1
    assert state["alerting"] is True
    assert state["smoothed_score"] < state["threshold"]
    assert state["last_alert_file"].endswith("y.jpg")

    for url in ("/latest.jpg", "/reference.jpg"):
        resp = c.get(url)
        assert resp.status_code == 200
        assert resp.mimetype == "image/jpeg"
        img = cv2.imdecode(np.frombuffer(resp.data, np.uint8), cv2.IMREAD_COLOR)
        assert img.shape == (48, 64, 3)

    page = c.get("/")
    assert page.status_code == 200
    assert b"SCENE CHANGED" in page.data

    name = state["last_alert_file"]
    assert os.path.isfile(os.path.join(service.store.directory, name))
    assert c.get(f"/captures/{name}").status_code == 200


def test_status_is_a_stable_copy():
    service = SceneWatchService(camera=ScriptedCamera([striped_frame(), striped_frame()]))
    service.dispatcher.run_cycle()
    before = service.get_status()

    service.dispatcher.run_cycle()

    assert before.total_frames == 1
    assert before.window == []
    after = service.get_status()
    assert after.total_frames == 2
    assert len(after.window) == 1
