"""
Gunicorn configuration for the habit streak API.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 1)

Each worker holds its own streak cache and per-task locks, so more than
one worker against the same database can serialize writes to a task only
at the database level. Keep WORKERS=1 unless that is acceptable.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "1"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Startup runs the full streak rebuild; give it room on large histories.
timeout = 120

# stdout only; application logs go through habitstreak.core.logging.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
