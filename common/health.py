"""
common.health
~~~~~~~~~~~~~
GET /health/ – liveness + readiness probe.

Returns:
    200  {"status": "ok", "db": "ok", "store": "ok"}
    503  {"status": "degraded", "db": "error", "store": "..."}

Failure details go to the server log, never to the response body.
"""
import structlog
from django.db import OperationalError, connection
from django.http import JsonResponse

from common.exceptions import InternalError

logger = structlog.get_logger(__name__)


def _check_store() -> str:
    # Imported lazily: the app registry must be ready.
    from apps.org_units.services import get_org_unit_service  # noqa: PLC0415

    try:
        get_org_unit_service().store.ping()
    except InternalError as exc:
        logger.error("health_check_store_failure", error=exc.detail)
        return "error"
    return "ok"


def health_check(request):
    """Return service health including database and store status."""
    try:
        connection.ensure_connection()
        db_status = "ok"
    except OperationalError as exc:
        db_status = "error"
        logger.error("health_check_db_failure", error=str(exc))

    store_status = _check_store() if db_status == "ok" else "skipped"
    healthy = db_status == "ok" and store_status == "ok"

    payload = {
        "status": "ok" if healthy else "degraded",
        "db": db_status,
        "store": store_status,
    }
    return JsonResponse(payload, status=200 if healthy else 503)
