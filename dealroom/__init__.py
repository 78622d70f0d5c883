# DEALROOM - Deal Data Room Service
"""
DEALROOM: access control and audit service for deal data rooms.

Components:
    - core.config_manager: Engine configuration (YAML/JSON + env overrides)
    - api: FastAPI service exposing decisions, viewer sessions,
      audit queries and administrative commands

The access engine itself lives in shared.dealroom_core.

Example:
    uvicorn dealroom.api.main:app --reload

Author: DEALROOM Development Team
Version: 1.0.0
"""

__version__ = "1.0.0"
