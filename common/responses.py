"""Render domain errors as API responses.

Only ``user_message`` reaches the client; the exception text stays in logs.
"""

from rest_framework import status
from rest_framework.response import Response

from .exceptions import AdmissionDenied, ConsistencyViolation, GatewayError, StorefrontError

STATUS_FOR_ERROR = (
    (AdmissionDenied, status.HTTP_409_CONFLICT),
    (GatewayError, status.HTTP_502_BAD_GATEWAY),
    (ConsistencyViolation, status.HTTP_409_CONFLICT),
)


def error_response(exc: StorefrontError) -> Response:
    for error_class, code in STATUS_FOR_ERROR:
        if isinstance(exc, error_class):
            break
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({"detail": exc.user_message}, status=code)
