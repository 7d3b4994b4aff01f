import httpx

from core.enums import CourierStatus
from core.exceptions import (DependencyTimeoutError, DependencyUnavailableError,
                             ForbiddenError, NotFoundError)
from utils.logger import get_logger

logger = get_logger(__name__)


class CourierClient:
    """
    Reads courier records from the courier service over HTTP.

    The courier service owns the ``couriers`` table; this is the only way the
    order service learns a courier's status.
    """

    def __init__(self, http: httpx.Client):
        self.http = http

    def get_status(self, courier_id: str) -> CourierStatus:
        """
        Fetch the courier's current status.

        Raises:
            NotFoundError: courier service answered 404
            DependencyTimeoutError: no answer within the client timeout
            DependencyUnavailableError: connection failure, 5xx or bad payload
        """
        try:
            response = self.http.get(f"/couriers/{courier_id}")
        except httpx.TimeoutException as e:
            logger.error(
                "Courier lookup timed out",
                extra={"courier_id": courier_id, "error": str(e)}
            )
            raise DependencyTimeoutError("Courier service did not respond in time", details=str(e))
        except httpx.HTTPError as e:
            logger.error(
                "Courier lookup failed",
                extra={"courier_id": courier_id, "error": str(e), "error_type": type(e).__name__}
            )
            raise DependencyUnavailableError("Courier service unavailable", details=str(e))

        if response.status_code == 404:
            raise NotFoundError("Courier not found", error_code="COURIER_NOT_FOUND")

        if response.status_code >= 400:
            logger.error(
                "Courier lookup returned an error",
                extra={"courier_id": courier_id, "status_code": response.status_code}
            )
            raise DependencyUnavailableError(
                "Courier service unavailable",
                details=f"GET /couriers/{courier_id} -> {response.status_code}"
            )

        try:
            body = response.json()
            # courier-service wraps records as {"success": true, "data": {...}}
            record = body.get("data", body) if isinstance(body, dict) else {}
            return CourierStatus(record["status"])
        except (ValueError, KeyError, TypeError) as e:
            raise DependencyUnavailableError(
                "Courier service returned an unexpected payload",
                details=str(e)
            )


class CourierAssignmentCoordinator:
    """
    Gatekeeper for binding a courier to an order.

    Eligibility is read from the courier service and is not part of the
    order transaction. A courier can lose approval between this check and the
    order update; the update itself is conditioned on ``status = APPROVED``,
    which bounds that window but does not close it. Such orders are left as
    they are and reconciled out of band.
    """

    def __init__(self, client: CourierClient):
        self.client = client

    def check_eligible(self, courier_id: str) -> bool:
        status = self.client.get_status(courier_id)
        eligible = status == CourierStatus.APPROVED

        logger.debug(
            "Courier eligibility checked",
            extra={"courier_id": courier_id, "courier_status": status.value, "eligible": eligible}
        )
        return eligible

    def ensure_eligible(self, courier_id: str):
        if not self.check_eligible(courier_id):
            logger.warning(
                "Assignment refused - courier not approved",
                extra={"courier_id": courier_id}
            )
            raise ForbiddenError(
                "Courier is not approved for deliveries",
                error_code="COURIER_NOT_ELIGIBLE"
            )
