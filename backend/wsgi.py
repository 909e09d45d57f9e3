# backend/wsgi.py
"""
Production entry point (e.g. `gunicorn --workers 1 wsgi:app`).

Starts the auto-close scheduler once for this process. Run a single worker
process (or disable AUTO_CLOSE_ENABLED on all but one) so days are not closed
by several schedulers at once; closing is idempotent either way.
"""

import atexit

from perla import create_app

app = create_app()

scheduler = app.extensions["auto_close"]
if scheduler.start():
    atexit.register(scheduler.stop)


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000)
