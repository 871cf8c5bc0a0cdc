"""
api/limiter.py -- The one slowapi Limiter for the API.

api/main.py mounts it, api/routes/v1/remediation.py decorates routes with it.
Counters live in process memory and are keyed by client address; tests call
limiter.reset() to start clean.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
