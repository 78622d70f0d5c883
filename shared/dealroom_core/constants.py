"""
DEALROOM Core - System Constants
================================

Centralized constants for the data room access engine.
All magic numbers and system-wide values should be defined here.

Author: DEALROOM Development Team
Version: 1.0.0
"""

# =============================================================================
# SYSTEM IDENTIFICATION
# =============================================================================

VERSION = "1.0.0"
SYSTEM_NAME = "DEALROOM"

# =============================================================================
# ROOM LIFECYCLE
# =============================================================================

# Grace window between room expiry and hard-delete eligibility
DEFAULT_SOFT_DELETE_GRACE_DAYS = 14

# Every grant is view-only today
PERMISSION_VIEW_ONLY = "VIEW_ONLY"

# =============================================================================
# VIEWER
# =============================================================================

# Zoom is expressed in percent and moves in fixed steps
ZOOM_MIN_PCT = 80
ZOOM_MAX_PCT = 160
ZOOM_STEP_PCT = 10
ZOOM_DEFAULT_PCT = 100

# Inactivity timeout for an open viewer session (minutes)
VIEWER_SESSION_TIMEOUT_MIN = 10

# Closed sessions kept for lookup before the oldest are dropped
VIEWER_CLOSED_HISTORY = 1000

# =============================================================================
# AUDIT
# =============================================================================

# First ordinal handed out by the audit sequence
AUDIT_FIRST_EVENT_ID = 1

# Hash used as prev_hash of the very first event in the chain
AUDIT_GENESIS_HASH = "0" * 64

# Storage retries at the audit backend boundary
AUDIT_RETRY_ATTEMPTS = 3
AUDIT_RETRY_BACKOFF_MS = 50

# Pagination for audit queries
AUDIT_DEFAULT_PAGE_SIZE = 50
AUDIT_MAX_PAGE_SIZE = 500

# Number of recent decisions kept in memory for diagnostics
DECISION_HISTORY_SIZE = 1000


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "VERSION",
    "SYSTEM_NAME",
    "DEFAULT_SOFT_DELETE_GRACE_DAYS",
    "PERMISSION_VIEW_ONLY",
    "ZOOM_MIN_PCT",
    "ZOOM_MAX_PCT",
    "ZOOM_STEP_PCT",
    "ZOOM_DEFAULT_PCT",
    "VIEWER_SESSION_TIMEOUT_MIN",
    "VIEWER_CLOSED_HISTORY",
    "AUDIT_FIRST_EVENT_ID",
    "AUDIT_GENESIS_HASH",
    "AUDIT_RETRY_ATTEMPTS",
    "AUDIT_RETRY_BACKOFF_MS",
    "AUDIT_DEFAULT_PAGE_SIZE",
    "AUDIT_MAX_PAGE_SIZE",
    "DECISION_HISTORY_SIZE",
]
