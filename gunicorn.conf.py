"""
Gunicorn configuration for the diary API.

Env vars that override defaults:
  PORT       TCP port to bind
  WORKERS    number of worker processes (default: 1)
  LOG_LEVEL  gunicorn log level (default: info)

Run with: gunicorn -c gunicorn.conf.py diary.main:app

The notification hub, session registry and breakdown cache live in worker
memory. Sessions are only reachable on the worker that opened them, so keep
one worker unless clients are pinned to a worker.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "1"))
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5
timeout = 60
graceful_timeout = 30

# stdout only; the platform collects it.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
