"""Rate limiting configuration."""

from __future__ import annotations

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from roombook.core.config import settings

logger = logging.getLogger(__name__)

# Door readers hit the verification endpoint without a bearer token, so the
# remote address is the only stable key. Production points the storage at
# Redis so several API instances share counters.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    default_limits=["1000/hour"],
)
logger.info(f"Rate limiter configured with storage: {settings.RATE_LIMIT_STORAGE_URI}")
