"""Rate limiting for the HTTP API.

Starting runs and refreshing claims both reach the remote claims API, so
they are limited per client address.
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

RUN_RATE_LIMIT = os.getenv("RUN_RATE_LIMIT", "10/minute")
REFRESH_RATE_LIMIT = os.getenv("REFRESH_RATE_LIMIT", "60/minute")

limiter = Limiter(key_func=get_remote_address)
