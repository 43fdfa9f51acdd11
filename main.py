"""Application entrypoint: starts the detection service and the Flask dashboard."""

from scene_watch.config import Config  # App configuration
from scene_watch.logging import configure_logging  # Root logging setup
from scene_watch.service import SceneWatchService  # Background capture service
from scene_watch.web import create_app  # Flask app factory


def main() -> None:
    """Create the service and either serve the dashboard or wait on the worker."""
    configure_logging(Config.LOG_LEVEL)
    service = SceneWatchService()
    service.start()  # Start background worker thread
    try:
        if Config.WEB_ENABLE:
            app = create_app(service)
            # Flask's built-in server; suitable for local/LAN use on the Pi
            app.run(host=Config.HOST, port=Config.PORT, debug=Config.DEBUG, threaded=True, use_reloader=False)
        else:
            service.join()
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()


if __name__ == "__main__":
    main()
