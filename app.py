import logging
import os
import socket

from weatherwiz.logging_config import configure_logging
from weatherwiz.ui.dash_app import create_dash_app

configure_logging()
logger = logging.getLogger("weatherwiz.app")

app = create_dash_app(os.getenv("WEATHERWIZ_CONFIG_ROOT", "config"))
server = app.server


def find_free_port(start_port: int, attempts: int = 100) -> int:
    """First port in [start_port, start_port + attempts) that can be bound locally."""
    for port in range(start_port, start_port + attempts):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind(("0.0.0.0", port))
            except OSError:
                continue
            return port
    return start_port


def main() -> None:
    preferred_port = int(os.getenv("PORT", "8050"))
    port = find_free_port(preferred_port)
    if port != preferred_port:
        logger.warning("Port taken, using next free one", extra={"preferred": preferred_port, "port": port})

    debug = os.getenv("DEBUG", "0") == "1"
    # The reloader would start a second process with its own session and worker pool
    app.run(host="0.0.0.0", port=port, debug=debug, use_reloader=False)


if __name__ == "__main__":
    main()
