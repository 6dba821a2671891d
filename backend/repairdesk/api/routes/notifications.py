from fastapi import APIRouter, Depends

from repairdesk.api.deps import get_current_caller, get_notification_orchestrator, http_error
from repairdesk.core.errors import ServiceError
from repairdesk.schemas.notification import (
    BroadcastNotificationRequest,
    NotificationResponse,
    StatusUpdateRequest,
)
from repairdesk.services.identity_service import CallerIdentity
from repairdesk.services.notification_service import NotificationOrchestrator


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post(
    "/broadcast",
    response_model=NotificationResponse,
    response_model_exclude_none=True,
    responses={
        400: {
            "description": "businessId, title or message missing",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "status": "invalid-argument",
                            "message": "businessId, title, and message are required",
                        }
                    }
                }
            },
        },
        401: {"description": "Request not authenticated"},
    },
)
def send_broadcast_notification(
    payload: BroadcastNotificationRequest,
    caller: CallerIdentity | None = Depends(get_current_caller),
    orchestrator: NotificationOrchestrator = Depends(get_notification_orchestrator),
):
    try:
        return orchestrator.send_broadcast(caller, payload)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post(
    "/status-update",
    response_model=NotificationResponse,
    response_model_exclude_none=True,
)
def send_status_update(
    payload: StatusUpdateRequest,
    caller: CallerIdentity | None = Depends(get_current_caller),
    orchestrator: NotificationOrchestrator = Depends(get_notification_orchestrator),
):
    return orchestrator.send_status_update(caller, payload)
