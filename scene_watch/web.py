"""Flask status dashboard and JSON API for the scene watch sensor."""

import os  # For file path operations
import time  # For cache-busting timestamps

import cv2  # For JPEG encoding
import flask  # Web server and templating

from .config import Config  # App configuration
from .service import SceneWatchService  # Service providing frames and state


def _jpeg_response(frame, missing: str):
    if frame is None:
        return (missing, 503)
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), 80])
    if not ok:
        return ("Encode error", 500)
    return flask.Response(buf.tobytes(), mimetype="image/jpeg")


def create_app(service: SceneWatchService) -> flask.Flask:
    """Create and configure the Flask application.

    Args:
      service: Running `SceneWatchService` to fetch frames and state from.

    Returns:
      A Flask app instance with routes for dashboard, images, and API.
    """
    app = flask.Flask(__name__)

    @app.route("/")
    def index():
        """Render the main dashboard page."""
        st = service.get_status()
        latest_files = service.list_latest_images(Config.GALLERY_LATEST_COUNT)
        return flask.render_template_string(
            _INDEX_TEMPLATE,
            alerting=st.alerting,
            reference_set=st.reference_set,
            smoothed=st.smoothed_score,
            last_score=st.last_score,
            threshold=st.threshold,
            window=st.window,
            alerts_count=st.alerts_count,
            saved_count=st.saved_images_count,
            total_frames=st.total_frames,
            capture_failures=st.capture_failures,
            latest_files=[os.path.basename(p) for p in latest_files],
            save_dir=service.store.directory,
            ts=int(time.time()),
        )

    @app.route("/latest.jpg")
    def latest_jpg():
        """Serve the most recent frame as a JPEG image."""
        return _jpeg_response(service.get_latest_frame(), "No frame yet")

    @app.route("/reference.jpg")
    def reference_jpg():
        """Serve the baseline frame as a JPEG image."""
        return _jpeg_response(service.get_reference_frame(), "No reference yet")

    @app.route("/captures/<path:filename>")
    def captures(filename: str):
        """Serve a saved capture by filename from the configured directory."""
        return flask.send_from_directory(service.store.directory, filename, mimetype="image/jpeg")

    @app.route("/api/state")
    def api_state():
        """Return the current service state as JSON."""
        st = service.get_status()
        return {
            "reference_set": st.reference_set,
            "total_frames": st.total_frames,
            "capture_failures": st.capture_failures,
            "rejected_frames": st.rejected_frames,
            "last_score": st.last_score,
            "smoothed_score": st.smoothed_score,
            "window": list(st.window),
            "threshold": st.threshold,
            "alerting": st.alerting,
            "alerts_count": st.alerts_count,
            "suppressed_count": st.suppressed_count,
            "saved_images_count": st.saved_images_count,
            "last_alert_ts": st.last_alert_ts,
            "last_alert_file": os.path.basename(st.last_alert_path),
        }

    return app


_INDEX_TEMPLATE = """
<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Scene Watch</title>
  <style>
    body { font-family: system-ui, Arial, sans-serif; margin: 0; background: #111; color: #eee; }
    header { padding: 12px 16px; background: #222; display: flex; align-items: center; justify-content: space-between; gap: 12px; }
    .alert { padding: 8px 12px; border-radius: 6px; font-weight: bold; }
    .alert.on { background: #b00020; color: #fff; }
    .alert.off { background: #2a2a2a; color: #aaa; }
    .pill { padding: 4px 8px; border-radius: 999px; font-weight: 600; font-size: 11px; background: #2a2a2a; color: #bbb; border: 1px solid #444; }
    main { padding: 16px; }
    .pair { display: flex; flex-wrap: wrap; gap: 12px; margin-bottom: 16px; }
    .grid { display: grid; gap: 12px; grid-template-columns: repeat(auto-fill, minmax(160px, 1fr)); }
    .card { background: #1b1b1b; padding: 8px; border-radius: 8px; }
    .live { max-width: 480px; flex: 1 1 320px; }
    img { width: 100%; height: auto; border-radius: 6px; display: block; }
    .meta { color: #9aa; font-size: 12px; }
  </style>
  <meta http-equiv="refresh" content="5">
</head>
<body>
  <header>
    <div style="display:flex; align-items:center; gap:8px">
      {% if smoothed is not none %}
        <span class="pill">Smoothed {{ '%.3f' % smoothed }}</span>
      {% endif %}
      {% if last_score is not none %}
        <span class="pill">Last {{ '%.3f' % last_score }}</span>
      {% endif %}
      <span class="pill">Threshold {{ '%.2f' % threshold }}</span>
      <span class="pill">Alerts {{ alerts_count }}</span>
    </div>
    {% if alerting %}
      <div class="alert on">SCENE CHANGED</div>
    {% elif reference_set %}
      <div class="alert off">Watching</div>
    {% else %}
      <div class="alert off">Waiting for reference</div>
    {% endif %}
  </header>
  <main>
    <div class="pair">
      <div class="live card">
        <img src="/latest.jpg?ts={{ts}}" alt="Latest frame" />
        <div class="meta">Latest &nbsp; | &nbsp; Frames: {{total_frames}} &nbsp; | &nbsp; Capture misses: {{capture_failures}}</div>
      </div>
      <div class="live card">
        <img src="/reference.jpg?ts={{ts}}" alt="Reference frame" />
        <div class="meta">Reference &nbsp; | &nbsp; Window: {% for v in window %}{{ '%.3f' % v }} {% endfor %}</div>
      </div>
    </div>
    <h3>Recent Alerts</h3>
    <div class="meta">Saved: {{saved_count}} &nbsp; | &nbsp; From: {{save_dir}}</div>
    <div class="grid">
      {% for f in latest_files %}
        <div class="card">
          <a href="{{ url_for('captures', filename=f) }}" target="_blank" rel="noopener">
            <img src="{{ url_for('captures', filename=f) }}?ts={{ts}}" alt="{{f}}" />
          </a>
          <div class="meta">{{ f }}</div>
        </div>
      {% else %}
        <div class="meta">No captures yet.</div>
      {% endfor %}
    </div>
  </main>
</body>
</html>
"""
