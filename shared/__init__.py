# DEALROOM - Shared Libraries
"""
Shared core libraries for the DEALROOM service.

Modules:
    dealroom_core: Room lifecycle, permission matrix, grants, decision
                   engine, viewer sessions, audit log
"""

__version__ = "1.0.0"
