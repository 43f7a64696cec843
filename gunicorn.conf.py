"""
Gunicorn configuration for the coaching portal API.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 2)

Every worker runs its own lifespan, so NUDGE_SCHEDULER_ENABLED=true belongs
with WORKERS=1. Multi-worker deployments trigger POST /nudges/dispatch from
an external timer instead.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# A dispatch cycle makes one Slack call per eligible nudge.
timeout = 180
graceful_timeout = 30

# stdout only; application logs are JSON lines from loguru.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
