"""
Error Handling Middleware
Translates every exception into a consistent ``{"error": message}`` response
"""
from flask import jsonify
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from opsflow.infra.log import get_logger
from opsflow.services.errors import OpsFlowError
from opsflow.services.request_context import get_request_id

logger = get_logger('opsflow.errors')


def error_response(message: str, status_code: int, **extra):
    body = {'error': message, **extra}
    request_id = get_request_id()
    if request_id:
        body['request_id'] = request_id
    return jsonify(body), status_code


def register_error_handlers(app):
    """Register error handlers for the API"""

    @app.errorhandler(OpsFlowError)
    def handle_opsflow_error(e):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e.message}", details=e.details)
            # Upstream failures surface as a plain 500
            return error_response(e.message, 500)
        return error_response(e.message, e.status_code)

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(e):
        """Handle request body validation failures"""
        return error_response('Invalid request', 400, details=e.messages)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        """Handle database integrity errors (foreign key, unique constraint)"""
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        logger.error(f"Database integrity error: {error_msg}")
        return error_response('Data integrity constraint violated', 400)

    @app.errorhandler(OperationalError)
    def handle_operational_error(e):
        """Handle database operational errors (connection, table not found, etc.)"""
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        logger.error(f"Database operational error: {error_msg}")
        return error_response('Database operation failed', 500)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error: {e}")
        return error_response(str(e) or 'Internal server error', 500)
