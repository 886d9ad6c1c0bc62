"""Global constants for batchreel.

Centralizes the polling defaults and per-run messages so the orchestrator,
configuration and CLI agree on them.
"""

# =============================================================================
# Polling Defaults
# =============================================================================

DEFAULT_POLL_INTERVAL_SECONDS = 3.0
"""Seconds to wait between two status queries."""

DEFAULT_MAX_POLLS = 60
"""Status queries per run before remaining jobs are timed out (~3 minutes)."""

# =============================================================================
# Backend Defaults
# =============================================================================

DEFAULT_SUBMIT_PATH = "/api/character-bulk-generate"
"""Endpoint accepting a batch of prompts."""

DEFAULT_POLL_PATH = "/api/check-videos-batch"
"""Endpoint returning the status of a batch of handles."""

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0
"""HTTP timeout applied to both submit and poll calls."""

# =============================================================================
# Job Messages
# =============================================================================

CANCELLED_MESSAGE = "Generation cancelled"
"""Assigned to jobs still pending when their run is cancelled."""

INTERRUPTED_MESSAGE = "Interrupted before completion"
"""Assigned to jobs restored from a results file while still processing."""

TRUNCATE_ERROR_MESSAGE_CHARS = 200
"""Maximum characters of an HTTP error body quoted in exception messages."""
