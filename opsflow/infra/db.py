"""
Unified database infrastructure module.

All models import the SQLAlchemy instance from here.
"""

from opsflow.database import db

__all__ = ["db"]
