# -*- coding: utf-8 -*-

import time

from flask import Blueprint, jsonify
from sqlalchemy import text

from opsflow.database import db

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET', 'HEAD'])
@health_bp.route('/healthz', methods=['GET', 'HEAD'])
def healthz():
    """Health check endpoint (available at both /health and /healthz)."""
    return jsonify({
        'status': 'healthy',
        'service': 'opsflow',
        'timestamp': time.time()
    }), 200


@health_bp.route('/readyz', methods=['GET', 'HEAD'])
def readyz():
    """Readiness check endpoint; verifies the database answers."""
    db.session.execute(text("SELECT 1"))
    return jsonify({
        'status': 'ready',
        'service': 'opsflow',
        'timestamp': time.time(),
        'checks': {
            'database': True
        }
    }), 200
