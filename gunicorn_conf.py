import multiprocessing
import os

# Gunicorn configuration for ERMS
# gunicorn -c gunicorn_conf.py erms.main:app

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# (2 x num_cores) + 1 unless WEB_CONCURRENCY says otherwise
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 120
keepalive = 5

# Access log to stdout; application logs go through erms.logging_config
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

name = "erms"
reload = False
