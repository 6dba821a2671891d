from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    image_url: str | None = None
    data: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class FcmPayload:
    title: str
    body: str
    image_url: str | None = None
    # Forwarded as-is; FCM itself rejects non-string values.
    data: dict[str, Any] = field(default_factory=dict)
    priority: str = "high"
    sound: str = "default"

    @property
    def mutable_content(self) -> bool:
        return self.image_url is not None


@dataclass(frozen=True)
class ApnsPayload:
    title: str
    body: str
    topic: str
    image_url: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    sound: str = "default"

    def to_json(self) -> dict[str, Any]:
        aps: dict[str, Any] = {
            "alert": {"title": self.title, "body": self.body},
            "sound": self.sound,
        }
        payload: dict[str, Any] = {"aps": aps}
        if self.image_url:
            aps["mutable-content"] = 1
            payload["imageUrl"] = self.image_url
        # Custom data is merged flat; a key named "aps" or "imageUrl" overrides ours.
        payload.update(self.data)
        return payload


@dataclass(frozen=True)
class ComposedNotification:
    fcm: FcmPayload
    apns: ApnsPayload


class NotificationComposer:
    def __init__(self, apns_topic: str) -> None:
        if not apns_topic:
            raise ValueError("APNs topic (app bundle id) is required")
        self.apns_topic = apns_topic

    def compose(self, request: NotificationRequest) -> ComposedNotification:
        image_url = request.image_url or None
        data = dict(request.data) if request.data else {}
        fcm = FcmPayload(
            title=request.title,
            body=request.body,
            image_url=image_url,
            data=data,
        )
        apns = ApnsPayload(
            title=request.title,
            body=request.body,
            topic=self.apns_topic,
            image_url=image_url,
            data=dict(data),
        )
        return ComposedNotification(fcm=fcm, apns=apns)
