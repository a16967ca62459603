"""
Unified authentication infrastructure module.

Routes import their auth decorator from here.
"""

from opsflow.services.auth import current_actor, require_actor

__all__ = ["require_actor", "current_actor"]
