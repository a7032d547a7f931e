"""
Error Handlers for Lexigraph

Provides:
- The engine's exception taxonomy
- Consistent error response format
- Flask error handlers
"""

from flask import jsonify, request, current_app
from typing import Optional, Dict, Any


class LexigraphError(Exception):
    """Base exception class for Lexigraph."""

    def __init__(
        self,
        message: str,
        code: str = 'UNKNOWN_ERROR',
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON response."""
        return {
            'success': False,
            'message': self.message,
            'code': self.code,
            'details': self.details
        }


class NotFoundError(LexigraphError):
    """Resource not found."""

    def __init__(self, message: str = 'Resource not found', resource: str = None):
        super().__init__(
            message=message,
            code='NOT_FOUND',
            status_code=404,
            details={'resource': resource} if resource else None
        )


class ValidationError(LexigraphError):
    """Input failed validation, or an item references a card that does not exist."""

    def __init__(self, message: str = 'Validation failed', errors: Dict = None):
        super().__init__(
            message=message,
            code='VALIDATION_ERROR',
            status_code=400,
            details={'errors': errors} if errors else None
        )


class NetworkError(LexigraphError):
    """A generation, embedding or persistence call failed."""

    def __init__(self, message: str = 'Upstream service failed', service: str = None):
        super().__init__(
            message=message,
            code='NETWORK_ERROR',
            status_code=502,
            details={'service': service} if service else None
        )


class StateConsistencyError(LexigraphError):
    """A queue or group invariant was violated."""

    def __init__(self, message: str = 'Session state is inconsistent', details: Dict = None):
        super().__init__(
            message=message,
            code='STATE_CONSISTENCY_ERROR',
            status_code=409,
            details=details
        )


class ServiceUnavailableError(LexigraphError):
    """A required collaborator was not configured on the app."""

    def __init__(self, message: str = 'Service unavailable', service: str = None):
        super().__init__(
            message=message,
            code='SERVICE_UNAVAILABLE',
            status_code=503,
            details={'service': service} if service else None
        )


def error_response(
    message: str,
    code: str = 'ERROR',
    status_code: int = 400,
    details: Dict = None
) -> tuple:
    """Create a standardized error response."""
    response = {
        'success': False,
        'message': message,
        'code': code
    }
    if details:
        response['details'] = details

    return jsonify(response), status_code


def success_response(data: Any = None, message: str = None) -> dict:
    """Create a standardized success response."""
    response = {'success': True}
    if data is not None:
        response['data'] = data
    if message:
        response['message'] = message
    return response


def register_error_handlers(app):
    """Register error handlers with Flask app."""

    @app.errorhandler(LexigraphError)
    def handle_lexigraph_error(error):
        current_app.logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        if '/api/' in request.path:
            return error_response('Endpoint not found', 'NOT_FOUND', 404)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        current_app.logger.exception('Internal server error')
        if '/api/' in request.path:
            return error_response('Internal server error', 'SERVER_ERROR', 500)
        return error
