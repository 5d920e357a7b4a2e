"""Constants and configuration values for k6validator.

This module centralizes limits and defaults that are used across the
codebase. Values that deployments commonly tune can be overridden through
environment variables, read once at import time.
"""

import os

# =============================================================================
# Script Limits
# =============================================================================

# Maximum script size in UTF-16 code units (50KB, matches the execution backend)
MAX_SCRIPT_SIZE = int(os.environ.get("K6V_MAX_SCRIPT_SIZE", 50 * 1024))

# Maximum number of virtual users a script may declare
MAX_VUS = int(os.environ.get("K6V_MAX_VUS", 500))

VALID_SCRIPT_EXTENSIONS = (".js", ".ts")


# =============================================================================
# HTTP Service
# =============================================================================

DEFAULT_PORT = int(os.environ.get("PORT", 3000))
DEFAULT_HOST = os.environ.get("HOST", "0.0.0.0")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# 20% headroom above the script limit for JSON/form framing
BODY_SIZE_HEADROOM = 1.2

# Maximum number of form fields accepted per request
MAX_FORM_FIELDS = 10

SERVICE_NAME = "k6-script-validator"
SERVICE_VERSION = "1.0.0"


# =============================================================================
# Rate Limiting
# =============================================================================

RATE_LIMIT_WINDOW_SECONDS = 15 * 60.0
RATE_LIMIT_MAX_REQUESTS = 100
