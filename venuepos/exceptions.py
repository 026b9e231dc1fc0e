# exceptions.py
from rest_framework.views import exception_handler
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework import status
from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from django.db import IntegrityError
import logging
from django.conf import settings

logger = logging.getLogger(__name__)


class InsufficientStock(APIException):
    """A transfer asked for more than the source tier holds."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock for this transfer.'
    default_code = 'insufficient_stock'


class IllegalTransition(APIException):
    """An order status change that the lifecycle does not allow."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This order cannot move to the requested status.'
    default_code = 'illegal_transition'


class AuthorizationDenied(APIException):
    """Wrong manager PIN, missing reason, or a variance closure without approval."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Manager authorization denied.'
    default_code = 'authorization_denied'


class ExternalServiceFailure(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Could not understand the order.'
    default_code = 'external_service_failure'


MESSAGES = {
    'insufficient_stock': 'Insufficient stock',
    'illegal_transition': 'Illegal status transition',
    'authorization_denied': 'Authorization denied',
    'external_service_failure': 'Could not understand',
}


def custom_exception_handler(exc, context):
    """
    Custom exception handler for the venue POS
    """
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        code = getattr(exc, 'default_code', None)
        custom_response_data = {
            'error': True,
            'message': 'An error occurred',
            'code': code,
            'details': response.data,
            'status_code': response.status_code
        }

        if code in MESSAGES:
            custom_response_data['message'] = MESSAGES[code]
        elif response.status_code == 400:
            custom_response_data['message'] = 'Validation error'
        elif response.status_code == 403:
            custom_response_data['message'] = 'Permission denied'
        elif response.status_code == 404:
            custom_response_data['message'] = 'Resource not found'
        elif response.status_code == 405:
            custom_response_data['message'] = 'Method not allowed'

        response.data = custom_response_data

    # Handle Django ValidationError raised from model code
    elif isinstance(exc, DjangoValidationError):
        logger.error(f"Validation Error: {exc}")
        response = Response({
            'error': True,
            'message': 'Validation error',
            'code': 'invalid',
            'details': {'non_field_errors': exc.messages},
            'status_code': 400
        }, status=status.HTTP_400_BAD_REQUEST)

    # Service functions look rows up with .get()
    elif isinstance(exc, ObjectDoesNotExist):
        response = Response({
            'error': True,
            'message': 'Resource not found',
            'code': 'not_found',
            'details': {'detail': str(exc)},
            'status_code': 404
        }, status=status.HTTP_404_NOT_FOUND)

    elif isinstance(exc, IntegrityError):
        logger.error(f"Integrity Error: {exc}")
        response = Response({
            'error': True,
            'message': 'Database integrity error',
            'code': 'integrity_error',
            'details': {'error': 'This operation violates database constraints'},
            'status_code': 400
        }, status=status.HTTP_400_BAD_REQUEST)

    else:
        logger.exception(f"Unexpected Error: {exc}")
        response = Response({
            'error': True,
            'message': 'An unexpected error occurred',
            'code': 'server_error',
            'details': {'error': str(exc)} if settings.DEBUG else {},
            'status_code': 500
        }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return response
