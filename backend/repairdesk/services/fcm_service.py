import json
import logging
from typing import Sequence

from firebase_admin import messaging

from repairdesk.core.firebase import get_firebase_app
from repairdesk.services.notification_composer import FcmPayload

logger = logging.getLogger(__name__)

# Hard ceiling of send_each_for_multicast.
FCM_MAX_TOKENS = 500


def _string_data(data) -> dict[str, str]:
    # FCM data maps only carry strings; other JSON values travel JSON-encoded.
    return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}


def build_multicast_message(tokens: Sequence[str], payload: FcmPayload) -> messaging.MulticastMessage:
    image = payload.image_url
    return messaging.MulticastMessage(
        tokens=list(tokens),
        notification=messaging.Notification(title=payload.title, body=payload.body, image=image),
        data=_string_data(payload.data),
        android=messaging.AndroidConfig(
            priority=payload.priority,
            notification=messaging.AndroidNotification(
                sound=payload.sound,
                priority=payload.priority,
                image=image,
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(
                    sound=payload.sound,
                    mutable_content=True if payload.mutable_content else None,
                ),
            ),
            fcm_options=messaging.APNSFCMOptions(image=image) if image else None,
        ),
    )


class FcmSender:
    def send_multicast(self, tokens: Sequence[str], payload: FcmPayload) -> messaging.BatchResponse:
        if len(tokens) > FCM_MAX_TOKENS:
            raise ValueError(f"FCM multicast accepts at most {FCM_MAX_TOKENS} tokens, got {len(tokens)}")
        app = get_firebase_app()
        message = build_multicast_message(tokens, payload)
        response = messaging.send_each_for_multicast(message, app=app)
        logger.info(
            "FCM multicast sent: %d ok, %d failed",
            response.success_count,
            response.failure_count,
        )
        return response
