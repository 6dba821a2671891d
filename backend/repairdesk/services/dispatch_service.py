import json
import logging
from contextlib import closing
from typing import Any, Protocol, Sequence

from repairdesk.core.observability import MetricsRegistry
from repairdesk.models.enums import PushChannel
from repairdesk.services import push_tokens
from repairdesk.services.apns_service import APNS_MAX_DEVICES, ApnsSendResult
from repairdesk.services.delivery_report import BatchResult
from repairdesk.services.fcm_service import FCM_MAX_TOKENS
from repairdesk.services.notification_composer import ApnsPayload, ComposedNotification, FcmPayload

logger = logging.getLogger(__name__)


class MulticastSender(Protocol):
    def send_multicast(self, tokens: Sequence[str], payload: FcmPayload) -> Any:  # pragma: no cover - Protocol
        ...


class ApnsSessionLike(Protocol):
    def send(self, payload: ApnsPayload, devices: Sequence[str]) -> ApnsSendResult:  # pragma: no cover - Protocol
        ...

    def close(self) -> None:  # pragma: no cover - Protocol
        ...


class ApnsSessionFactory(Protocol):
    def open_session(self) -> ApnsSessionLike:  # pragma: no cover - Protocol
        ...


def chunked(items: Sequence[str], size: int) -> list[list[str]]:
    if size < 1:
        raise ValueError("batch size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _fcm_detail(token: str, send_response: Any) -> dict[str, Any]:
    exc = getattr(send_response, "exception", None)
    return {
        "token": token,
        "success": bool(getattr(send_response, "success", False)),
        "messageId": getattr(send_response, "message_id", None),
        "error": str(exc) if exc is not None else None,
    }


class BatchDispatcher:
    """Sends one composed notification to a token list, channel by channel.

    Batches of a channel run one after the other so batch indices are stable.
    Provider exceptions become failed ``BatchResult`` entries; ``dispatch``
    itself does not raise for them.
    """

    def __init__(
        self,
        fcm_sender: MulticastSender,
        apns_provider: ApnsSessionFactory,
        *,
        fcm_batch_size: int = FCM_MAX_TOKENS,
        apns_batch_size: int = APNS_MAX_DEVICES,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._fcm_sender = fcm_sender
        self._apns_provider = apns_provider
        self._fcm_batch_size = min(fcm_batch_size, FCM_MAX_TOKENS)
        self._apns_batch_size = min(apns_batch_size, APNS_MAX_DEVICES)
        self._metrics = metrics

    def dispatch(self, tokens: Sequence[str], composed: ComposedNotification) -> list[BatchResult]:
        fcm_tokens, apns_tokens = push_tokens.partition(tokens)
        logger.info("Dispatching to %d FCM and %d APNs tokens", len(fcm_tokens), len(apns_tokens))

        results = self._dispatch_fcm(fcm_tokens, composed.fcm)
        if apns_tokens:
            results.extend(self._dispatch_apns(apns_tokens, composed.apns))

        if self._metrics is not None:
            for result in results:
                self._metrics.observe_push_batch(
                    result.channel.value,
                    ok=result.ok,
                    success=result.success_count,
                    failure=result.failure_count,
                    size=result.size,
                )
        return results

    def _dispatch_fcm(self, tokens: list[str], payload: FcmPayload) -> list[BatchResult]:
        results: list[BatchResult] = []
        for index, batch in enumerate(chunked(tokens, self._fcm_batch_size), start=1):
            try:
                response = self._fcm_sender.send_multicast(batch, payload)
            except Exception as exc:
                logger.exception("FCM batch %d (%d tokens) failed", index, len(batch))
                results.append(BatchResult.failed(index, PushChannel.FCM, size=len(batch), error=str(exc)))
                continue
            results.append(
                BatchResult.delivered(
                    index,
                    PushChannel.FCM,
                    size=len(batch),
                    success_count=response.success_count,
                    failure_count=response.failure_count,
                    details=[_fcm_detail(token, r) for token, r in zip(batch, response.responses)],
                )
            )
        return results

    def _dispatch_apns(self, tokens: list[str], payload: ApnsPayload) -> list[BatchResult]:
        try:
            session = self._apns_provider.open_session()
        except Exception as exc:
            logger.exception("Could not open APNs session for %d tokens", len(tokens))
            return [BatchResult.failed(1, PushChannel.APNS, size=len(tokens), error=str(exc))]

        results: list[BatchResult] = []
        with closing(session):
            for index, batch in enumerate(chunked(tokens, self._apns_batch_size), start=1):
                results.append(self._send_apns_batch(session, index, batch, payload))
        logger.info("APNs session closed after %d batches", len(results))
        return results

    def _send_apns_batch(
        self,
        session: ApnsSessionLike,
        index: int,
        batch: list[str],
        payload: ApnsPayload,
    ) -> BatchResult:
        try:
            response = session.send(payload, batch)
        except Exception as exc:
            logger.exception("APNs batch %d (%d tokens) failed", index, len(batch))
            return BatchResult.failed(index, PushChannel.APNS, size=len(batch), error=str(exc))

        for position, rejection in enumerate(response.failed):
            logger.warning(
                json.dumps(
                    {
                        "event": "apns_rejection",
                        "batch": index,
                        "index": position,
                        "device": rejection.device,
                        "status": rejection.status,
                        "reason": rejection.reason,
                    }
                )
            )
        return BatchResult.delivered(
            index,
            PushChannel.APNS,
            size=len(batch),
            success_count=len(response.sent),
            failure_count=len(response.failed),
            details=[rejection.as_dict() for rejection in response.failed],
        )
