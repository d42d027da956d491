"""Centralized constants for flashgen.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Source text ----------
SOURCE_MIN_LENGTH = 1000
SOURCE_MAX_LENGTH = 10000

# ---------- Proposal fields ----------
FRONT_MIN_LENGTH = 1
FRONT_MAX_LENGTH = 200
BACK_MIN_LENGTH = 1
BACK_MAX_LENGTH = 500

# ---------- HTTP ----------
REQUEST_TIMEOUT = 30.0
LIST_PAGE_SIZE = 100
DEFAULT_RETRY_AFTER = 60  # seconds

# ---------- Timers ----------
TICK_INTERVAL = 1.0  # seconds
DRAFT_DEBOUNCE_DELAY = 0.5  # seconds

# ---------- Draft persistence ----------
DRAFT_STORAGE_KEY = "generate-view-draft"

# ---------- Log files ----------
LOG_FILE_NAME = "flashgen.log"
LOG_MAX_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 3

# ---------- Error codes ----------
ERROR_CODE_AI_SERVICE = "AI_SERVICE_ERROR"
ERROR_CODE_AUTH = "AUTHENTICATION_REQUIRED"
ERROR_CODE_RATE_LIMIT = "RATE_LIMIT_EXCEEDED"
ERROR_CODE_VALIDATION = "VALIDATION_ERROR"
ERROR_CODE_INTERNAL = "INTERNAL_ERROR"
