"""Gunicorn configuration for the research service.

Run with: gunicorn -c gunicorn_conf.py adaptive_research.server:app
"""

import multiprocessing
import os

port = os.environ.get("PORT", "8080")
bind = f"0.0.0.0:{port}"

# Research is I/O bound (LLM and provider calls); a couple of async workers suffice
workers = int(os.environ.get("GUNICORN_WORKERS", min(2, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"

# A run is at most 4 rounds plus planning and ranking; the SSE stream caps at 10 minutes
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "660"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.environ.get("GUNICORN_KEEPALIVE", "5"))

loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"

preload_app = True
backlog = 2048

max_requests = int(os.environ.get("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = int(os.environ.get("GUNICORN_MAX_REQUESTS_JITTER", "50"))
