# -*- coding: utf-8 -*-
"""
Shared Flask-SQLAlchemy instance.

Models and services import ``db`` from here; the app factory binds it with
``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

__all__ = ["db"]
