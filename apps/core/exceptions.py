"""
Exception hierarchy and error translation for Accredit.

Authorization failures form a small closed set of kinds. Each kind has a
stable machine-readable code and an HTTP status, and is rendered the same
way whether it escapes a DRF view or is caught by middleware.
"""
import logging
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class AccreditException(Exception):
    """Base exception for Accredit-specific errors."""

    code = 'ERROR'
    status_code = 500

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AccreditException):
    """Raised when no verifiable identity is present."""
    code = 'UNAUTHENTICATED'
    status_code = 401


class PermissionDeniedError(AccreditException):
    """Raised when the actor lacks a capability or does not own the entity."""
    code = 'FORBIDDEN'
    status_code = 403


class InstitutionScopeViolation(PermissionDeniedError):
    """Raised when a tenant-scoped actor touches another institution's entity."""
    code = 'INSTITUTION_SCOPE_VIOLATION'


class ReviewOnlyViolation(PermissionDeniedError):
    """Raised when the oversight actor writes something other than a review artifact."""
    code = 'REVIEW_ONLY_VIOLATION'


class ValidationError(AccreditException):
    """Raised when input validation fails."""
    code = 'VALIDATION_ERROR'
    status_code = 400


class NotFoundError(AccreditException):
    """Raised when a looked-up record does not exist."""
    code = 'NOT_FOUND'
    status_code = 404


class ImpersonationLimitExceeded(AccreditException):
    """Raised when an impersonator already holds the maximum number of active sessions."""
    code = 'IMPERSONATION_LIMIT_EXCEEDED'
    status_code = 409


def error_payload(exc, request_id=None):
    """
    Build the standard error body for an AccreditException.

    Shape: {'error': {'code', 'message', 'details'?}, 'request_id'?}
    """
    data = {
        'error': {
            'code': exc.code,
            'message': exc.message,
        }
    }
    if exc.details:
        data['error']['details'] = exc.details
    if request_id:
        data['request_id'] = request_id
    return data


def error_response(exc, request_id=None):
    """Render an AccreditException as a JsonResponse (for use outside DRF)."""
    return JsonResponse(error_payload(exc, request_id), status=exc.status_code)


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, AccreditException):
        log_method = logger.warning if exc.status_code < 500 else logger.error
        log_method(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'code': exc.code,
                'exception': exc.message,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        return Response(error_payload(exc, request_id), status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
