import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import ParcelhubError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """Render domain errors as JSON, defer everything else to DRF."""
    if isinstance(exc, ParcelhubError):
        view = context.get('view')
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "api error", extra={
                "code": exc.code,
                "status": exc.status_code,
                "view": type(view).__name__ if view else None,
                "errorMessage": exc.message,
            }
        )
        return Response(exc.as_payload(), status=exc.status_code)
    return exception_handler(exc, context)
