"""Broadcast and status-update fan-out.

Both flows go through the same steps: check the caller, check the required
fields, resolve tokens, compose, dispatch per channel and fold the batch
results into one report. Resolving zero tokens is a successful outcome.
"""

import json
import logging
from typing import Sequence

from repairdesk.core.errors import InternalError, InvalidArgument, Unauthenticated
from repairdesk.models.enums import UserRole
from repairdesk.schemas.notification import (
    BroadcastNotificationRequest,
    NotificationResponse,
    StatusUpdateRequest,
)
from repairdesk.services.delivery_report import DeliveryReport, aggregate
from repairdesk.services.dispatch_service import BatchDispatcher
from repairdesk.services.identity_service import CallerIdentity
from repairdesk.services.notification_composer import NotificationComposer, NotificationRequest
from repairdesk.services.push_tokens import TokenResolver

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Request not authenticated"


def report_response(report: DeliveryReport, message: str) -> NotificationResponse:
    return NotificationResponse(
        success=True,
        message=message,
        total_tokens=report.total_tokens,
        total_success=report.total_success,
        total_failure=report.total_failure,
        results=[r.as_response() for r in report.batch_results],
    )


class NotificationOrchestrator:
    def __init__(
        self,
        resolver: TokenResolver,
        composer: NotificationComposer,
        dispatcher: BatchDispatcher,
    ) -> None:
        self._resolver = resolver
        self._composer = composer
        self._dispatcher = dispatcher

    def send_broadcast(
        self,
        caller: CallerIdentity | None,
        payload: BroadcastNotificationRequest,
    ) -> NotificationResponse:
        if caller is None:
            raise Unauthenticated(NOT_AUTHENTICATED)
        if not (payload.business_id and payload.title and payload.message):
            raise InvalidArgument("businessId, title, and message are required")

        logger.info("Broadcast for business %s requested by %s", payload.business_id, caller.uid)
        try:
            mobiles = self._resolver.customer_mobiles(payload.business_id)
            if not mobiles:
                return report_response(DeliveryReport.empty(), "No customers found in repairs")

            tokens = self._resolver.tokens_for_mobiles(mobiles, role=UserRole.USER)
            if not tokens:
                return report_response(DeliveryReport.empty(), "No customers found with FCM or APNs tokens")

            request = NotificationRequest(
                title=payload.title,
                body=payload.message,
                image_url=payload.image_url,
                data=payload.data,
            )
            return self._deliver(tokens, request)
        except Exception as exc:
            logger.exception("Broadcast for business %s failed", payload.business_id)
            raise InternalError(str(exc)) from exc

    def send_status_update(
        self,
        caller: CallerIdentity | None,
        payload: StatusUpdateRequest,
    ) -> NotificationResponse:
        """Never raises; every outcome is a structured response."""
        if caller is None:
            return NotificationResponse(success=False, error=NOT_AUTHENTICATED)
        if not (payload.mobile and payload.title and payload.message):
            logger.info("Status update rejected, missing required fields")
            return NotificationResponse(success=False, error="Missing required fields")

        try:
            tokens = self._resolver.resolve_by_mobile(payload.mobile)
            if not tokens:
                return report_response(DeliveryReport.empty(), "No devices registered for this mobile number")

            request = NotificationRequest(
                title=payload.title,
                body=payload.message,
                image_url=payload.image_url,
                data=payload.data,
            )
            return self._deliver(tokens, request)
        except Exception as exc:
            logger.exception("Status update for mobile %s failed", payload.mobile)
            return NotificationResponse(success=False, error=str(exc) or "Failed to send notification")

    def _deliver(self, tokens: Sequence[str], request: NotificationRequest) -> NotificationResponse:
        composed = self._composer.compose(request)
        batch_results = self._dispatcher.dispatch(tokens, composed)
        report = aggregate(batch_results, total_tokens=len(tokens))

        message = f"Notification sent to {report.total_success} devices"
        if report.includes_apns:
            message += " (includes APNs)"
        logger.info(
            json.dumps(
                {
                    "event": "notification_delivered",
                    "total_tokens": report.total_tokens,
                    "total_success": report.total_success,
                    "total_failure": report.total_failure,
                    "batches": len(report.batch_results),
                    "failed_batches": sum(1 for r in report.batch_results if not r.ok),
                }
            )
        )
        return report_response(report, message)
