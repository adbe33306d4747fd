"""Defaults used when callers leave a setting to the system."""

from __future__ import annotations

# Effective partition keys are 64-bit hashes: the key space is [0, 2**64)
KEY_SPACE_MIN = 0
KEY_SPACE_MAX = 1 << 64

# Pagination
DEFAULT_MAX_ITEM_COUNT = 100
SYSTEM_MAX_CONCURRENCY = 16

# Retries for transient partition failures
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.05
DEFAULT_RETRY_MAX_DELAY = 2.0
DEFAULT_RETRY_JITTER = 0.2

# Collections
DEFAULT_PARTITION_COUNT = 1
DEFAULT_PARTITION_CAPACITY = 10_000
