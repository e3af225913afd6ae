"""
Maps dispatch errors onto HTTP statuses for DRF.
Registered as REST_FRAMEWORK["EXCEPTION_HANDLER"].
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from dispatch.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STATUS_FOR_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
)


def emergency_exception_handler(exc, context):
    for error_type, http_status in STATUS_FOR_ERROR:
        if isinstance(exc, error_type):
            logger.info("%s -> %s: %s", type(exc).__name__, http_status, exc)
            return Response({"detail": str(exc)}, status=http_status)
    return exception_handler(exc, context)
