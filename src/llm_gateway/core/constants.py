# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Default values for every tunable knob. All durations are in seconds."""

# Key rotation
DEFAULT_KEY_COOLDOWN = 60.0

# Provider manager
DEFAULT_PROVIDER_COOLDOWN = 3600.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0

# Adapter-level retries on 5xx / timeouts
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_CONNECT_TIMEOUT = 10.0

# Model catalog
DEFAULT_CATALOG_TTL = 300.0
DEFAULT_CONTEXT_LENGTH = 4096

# Health checks
DEFAULT_HEALTH_CHECK_INTERVAL = 7200.0
DEFAULT_HEALTH_CHECK_DELAY = 26.0
DEFAULT_HEALTH_CHECK_RETRIES = 2
DEFAULT_HEALTH_CHECK_RETRY_DELAY = 5.0
DEFAULT_HEALTH_CHECK_MIN_WORDS = 2
DEFAULT_HEALTH_CHECK_TIMEOUT = 60.0
HEALTH_CHECK_TEMPERATURE = 0.3
HEALTH_CHECK_MAX_TOKENS = 50

VALID_ROLES = frozenset({"user", "assistant", "system"})
