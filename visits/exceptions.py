"""
Workflow error types and the unified API exception handler.

Every failure leaves the API as ``{"ok": false, "error": {"code",
"message"}}`` with the status code of the exception class.  Unexpected
exceptions are logged with their traceback and answered with a generic
500 body.
"""
from __future__ import annotations

import logging

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

# Malformed or missing request fields
ValidationError = exceptions.ValidationError


class Forbidden(exceptions.PermissionDenied):
    default_detail = 'Access denied'
    default_code = 'forbidden'


class NotFound(exceptions.NotFound):
    default_detail = 'Patient not found'
    default_code = 'not_found'


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Duplicate unique value'
    default_code = 'conflict'


class PreconditionFailed(exceptions.APIException):
    """A workflow guard rejected the action for the record's current state."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Action not allowed in the current status'
    default_code = 'precondition_failed'


class InternalError(exceptions.APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal server error'
    default_code = 'server_error'


def _error_code(exc) -> str:
    if isinstance(exc, exceptions.ValidationError):
        return 'invalid'
    if isinstance(exc, exceptions.PermissionDenied):
        return Forbidden.default_code
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return NotFound.default_code
    return getattr(exc, 'default_code', None) or 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('unhandled error in %s', view.__class__.__name__ if view else 'view', exc_info=exc)
        return Response(
            {'ok': False, 'error': {'code': InternalError.default_code, 'message': str(InternalError.default_detail)}},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    if isinstance(exc, InternalError):
        logger.error('internal error: %s', exc.detail)

    error: dict[str, object] = {'code': _error_code(exc)}
    if isinstance(exc, exceptions.ValidationError):
        error['message'] = 'Validation error'
        error['fields'] = resp.data
    elif isinstance(resp.data, dict):
        error['message'] = resp.data.get('detail') or resp.data
    else:
        error['message'] = str(resp.data)
    resp.data = {'ok': False, 'error': error}
    return resp
