# gunicorn.conf.py
import multiprocessing
import os

wsgi_app = "corpnet.wsgi:application"

# Workers are synchronous: each request runs its store calls in sequence
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
timeout = int(os.getenv("GUNICORN_TIMEOUT", 60))
graceful_timeout = 30
keepalive = 5
max_requests = 2000
max_requests_jitter = 100

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

proc_name = "corpnet"

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")

# Behind a reverse proxy that sets X-Forwarded-*
forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "*")
