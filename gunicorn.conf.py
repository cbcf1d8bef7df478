"""
Gunicorn configuration for the payments portal API.

Usage:
    gunicorn -c gunicorn.conf.py wsgi:app

Notes:
- Sessions are files under the instance folder, so every worker on the
  host sees the same sessions.
- memory:// rate-limit counters are per worker; point
  RATELIMIT_STORAGE_URI at Redis when running more than one worker.
- SQLite serializes writers; the busy timeout (DATABASE_TIMEOUT) must
  stay below the worker timeout.
"""

import multiprocessing
import os

# --- Bind ---
bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')

# --- Workers ---
# bcrypt at 12 rounds holds a worker for ~250ms per login, so size by CPU.
workers = int(os.environ.get(
    'GUNICORN_WORKERS',
    min(multiprocessing.cpu_count() * 2 + 1, 4),
))
worker_class = 'sync'

# --- Timeouts ---
timeout = 30
graceful_timeout = 10
keepalive = 2

# --- Worker Recycling ---
max_requests = 1000
max_requests_jitter = 50

# --- Request Limits ---
# Header limits at the WSGI layer; body size is capped by MAX_CONTENT_LENGTH.
limit_request_line = 4094
limit_request_fields = 50
limit_request_field_size = 8190

# --- Server Identity ---
server_software = ''

# --- Logging ---
# Access log excludes request bodies, cookies and the X-CSRFToken header.
accesslog = '-'
errorlog = '-'
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s %(L)s'
loglevel = os.environ.get('LOG_LEVEL', 'info')

proc_name = 'payportal'

# --- Forwarded Headers ---
# Only enable behind a trusted proxy; see PROXY_COUNT in config.py.
forwarded_allow_ips = os.environ.get('FORWARDED_ALLOW_IPS', '127.0.0.1')
