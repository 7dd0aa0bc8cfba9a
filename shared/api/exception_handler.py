"""
DRF exception handler

Renders every API error as ``{"message": ..., "code": ...}``. Domain errors
carry their own status and code; DRF's own exceptions keep their status and
field errors are attached under ``errors``.
"""

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.base import DomainError

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying a 503
RETRY_AFTER_SECONDS = 1


def _domain_error_response(exc: DomainError) -> Response:
    data = {'message': exc.message, 'code': exc.code}
    conflicting_ids = getattr(exc, 'conflicting_ids', None)
    if conflicting_ids:
        data['conflictingIds'] = [str(booking_id) for booking_id in conflicting_ids]

    headers = {}
    if exc.status_code == 503:
        headers['Retry-After'] = str(RETRY_AFTER_SECONDS)

    return Response(data, status=exc.status_code, headers=headers)


def booking_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        view = context.get('view')
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'unknown view'}: {exc.message}"
        )
        return _domain_error_response(exc)

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and 'detail' in data:
        detail = data['detail']
        response.data = {
            'message': str(detail),
            'code': getattr(detail, 'code', None) or getattr(exc, 'default_code', 'error'),
        }
    else:
        response.data = {
            'message': 'Invalid request data.',
            'code': 'invalid',
            'errors': data,
        }
    return response
