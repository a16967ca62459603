"""
Infrastructure package - unified entry points for core services.

This package provides standardized, centralized access to:
- Database (db)
- Authentication (require_actor)
- Logging (configure_logging, init_logging, get_logger)
"""

from opsflow.infra.db import db
from opsflow.infra.auth import require_actor
from opsflow.infra.log import configure_logging, init_logging, get_logger

__all__ = [
    "db",
    "require_actor",
    "configure_logging",
    "init_logging",
    "get_logger",
]
