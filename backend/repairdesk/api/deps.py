import logging
from functools import lru_cache

from fastapi import Depends, HTTPException

from repairdesk.api.security import get_bearer_token
from repairdesk.core.config import settings
from repairdesk.core.errors import ServiceError
from repairdesk.core.observability import MetricsRegistry, metrics_registry
from repairdesk.db import session as db_session
from repairdesk.services.apns_service import ApnsProvider
from repairdesk.services.dispatch_service import BatchDispatcher
from repairdesk.services.fcm_service import FcmSender
from repairdesk.services.identity_service import CallerIdentity, IdentityService
from repairdesk.services.notification_composer import NotificationComposer
from repairdesk.services.notification_service import NotificationOrchestrator
from repairdesk.services.push_tokens import TokenResolver

logger = logging.getLogger(__name__)


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.http_status, detail={"status": exc.status, "message": str(exc)})

def get_identity_service() -> IdentityService:
    return IdentityService()

def get_current_caller(
    token: str | None = Depends(get_bearer_token),
    identity: IdentityService = Depends(get_identity_service),
) -> CallerIdentity | None:
    if not token:
        return None
    # A failed verification leaves the caller anonymous; each handler answers that in its own shape.
    try:
        return identity.verify_id_token(token)
    except Exception:
        logger.exception("ID token verification failed")
        return None

def get_session_factory():
    return db_session.SessionLocal

def get_metrics() -> MetricsRegistry:
    return metrics_registry

def get_fcm_sender() -> FcmSender:
    return FcmSender()

@lru_cache
def get_apns_provider() -> ApnsProvider:
    # Shared so the signed provider token is reused across requests.
    return ApnsProvider.from_settings(settings)

def get_token_resolver(session_factory=Depends(get_session_factory)) -> TokenResolver:
    return TokenResolver(session_factory, max_workers=settings.resolver_max_workers)

def get_dispatcher(
    fcm_sender=Depends(get_fcm_sender),
    apns_provider=Depends(get_apns_provider),
    metrics: MetricsRegistry = Depends(get_metrics),
) -> BatchDispatcher:
    return BatchDispatcher(
        fcm_sender,
        apns_provider,
        fcm_batch_size=settings.fcm_batch_size,
        apns_batch_size=settings.apns_batch_size,
        metrics=metrics,
    )

def get_notification_orchestrator(
    resolver: TokenResolver = Depends(get_token_resolver),
    dispatcher: BatchDispatcher = Depends(get_dispatcher),
) -> NotificationOrchestrator:
    return NotificationOrchestrator(resolver, NotificationComposer(settings.apns_topic), dispatcher)
