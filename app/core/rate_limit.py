"""Rate limiting configuration for the CRM API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

# Single-process deployment: in-memory counters are enough.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not IS_TESTING,
)
