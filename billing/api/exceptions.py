import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from billing.exceptions import BillingError


logger = logging.getLogger(__name__)


def _first_message(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            return message if key == 'non_field_errors' else f"{key}: {message}"
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    return str(detail)


def billing_exception_handler(exc, context):
    """
    Every error response carries an `error` message.

    BillingError maps to its own status. DRF's exceptions keep DRF's status,
    with field errors kept under `fields`. Anything else is logged and
    returned as a 500.
    """
    if isinstance(exc, BillingError):
        return Response({'error': exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        if isinstance(exc, exceptions.ValidationError):
            response.data = {'error': _first_message(exc.detail), 'fields': exc.detail}
        elif isinstance(response.data, dict) and 'detail' in response.data:
            response.data = {'error': str(response.data['detail'])}
        return response

    view = context.get('view')
    logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'billing API'}")
    return Response({'error': str(exc) or 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
