import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core import errors

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = [
    (errors.ValidationError, status.HTTP_400_BAD_REQUEST),
    (errors.AuthorizationError, status.HTTP_403_FORBIDDEN),
    (errors.IneligibleError, status.HTTP_403_FORBIDDEN),
    (errors.NotFoundError, status.HTTP_404_NOT_FOUND),
    (errors.PhaseError, status.HTTP_409_CONFLICT),
    (errors.DuplicateError, status.HTTP_409_CONFLICT),
    (errors.AlreadyVotedError, status.HTTP_409_CONFLICT),
    (errors.InvalidCandidateError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def election_exception_handler(exc, context):
    if isinstance(exc, errors.ElectionCoreError):
        code = next((code for kind, code in STATUS_BY_ERROR if isinstance(exc, kind)),
                    status.HTTP_400_BAD_REQUEST)
        body = {"code": exc.code, "message": exc.message}
        if isinstance(exc, errors.ValidationError) and exc.fields:
            body["fields"] = exc.fields
        logger.info("%s rejected: %s (%s)", context["view"].__class__.__name__, exc.code, exc.message)
        return Response(body, status=code)
    return exception_handler(exc, context)
