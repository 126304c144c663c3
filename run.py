from __future__ import annotations
import os
import signal
import sys

from smoothflow import create_app
from smoothflow.extensions import db


def _install_shutdown_handlers(flask_app) -> None:
    """Close pooled database connections when the process is asked to stop."""

    def shutdown(signum, frame) -> None:
        flask_app.logger.info("Received signal %s, disposing database connections", signum)
        with flask_app.app_context():
            db.engine.dispose()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)


def main() -> None:
    flask_app = create_app()

    # show what routes are actually mounted
    print("\n=== URL MAP ===")
    for r in sorted(flask_app.url_map.iter_rules(), key=lambda x: x.rule):
        print(r)
    print("===============\n")

    _install_shutdown_handlers(flask_app)

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)

if __name__ == "__main__":
    main()
