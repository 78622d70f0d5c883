"""Database layer for the audit archive."""

from dealroom.api.db.models import Base, AuditEventRecord
from dealroom.api.db.session import get_db, init_db, close_db

__all__ = ["Base", "AuditEventRecord", "get_db", "init_db", "close_db"]
