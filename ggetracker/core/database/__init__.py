"""
Per-server relational database access.
"""

from ggetracker.core.database.service import DatabaseService

__all__ = ["DatabaseService"]
