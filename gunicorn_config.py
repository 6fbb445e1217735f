import multiprocessing
import os

# Gunicorn configuration file
# https://docs.gunicorn.org/en/stable/configure.html#configuration-file

# Cloud Run style hosts pass the port in $PORT
bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Each worker holds its own secret cache, so every worker reads Secret Manager once
workers = int(os.getenv("WEB_CONCURRENCY") or (multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
threads = 4

# Stripe pagination for a busy year-to-date window can take a while
timeout = 120
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = "info"

proc_name = "stripe_connect_reports"
