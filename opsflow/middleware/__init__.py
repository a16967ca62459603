# -*- coding: utf-8 -*-
"""
Middleware package for the OpsFlow API
"""

from .errors import register_error_handlers, error_response

__all__ = [
    'register_error_handlers',
    'error_response',
]
