"""Direct APNs delivery over HTTP/2.

``ApnsProvider`` holds the signing credentials and mints the ES256 provider
token; ``ApnsSession`` wraps one HTTP/2 connection and must be closed by
whoever opened it.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import httpx
from jose import jwt

from repairdesk.core.config import Settings
from repairdesk.services.notification_composer import ApnsPayload

logger = logging.getLogger(__name__)

APNS_PRODUCTION_URL = "https://api.push.apple.com"
APNS_SANDBOX_URL = "https://api.sandbox.push.apple.com"
# Apple rejects provider tokens older than one hour.
TOKEN_REFRESH_SECONDS = 50 * 60
APNS_MAX_DEVICES = 1000


class ApnsConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class ApnsRejection:
    device: str
    status: int | None
    reason: str

    def as_dict(self) -> dict:
        return {"device": self.device, "status": self.status, "reason": self.reason}


@dataclass(frozen=True)
class ApnsSendResult:
    sent: list[str] = field(default_factory=list)
    failed: list[ApnsRejection] = field(default_factory=list)


def _rejection_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text or f"HTTP {response.status_code}"
    if not isinstance(body, dict):
        return f"HTTP {response.status_code}"
    return str(body.get("reason") or f"HTTP {response.status_code}")


class ApnsSession:
    def __init__(self, client: httpx.Client, provider_token) -> None:
        self._client = client
        self._provider_token = provider_token
        self.closed = False

    def send(self, payload: ApnsPayload, devices: Sequence[str]) -> ApnsSendResult:
        if self.closed:
            raise RuntimeError("APNs session is closed")
        if len(devices) > APNS_MAX_DEVICES:
            raise ValueError(f"APNs batch accepts at most {APNS_MAX_DEVICES} devices, got {len(devices)}")

        body = payload.to_json()
        headers = {
            "authorization": f"bearer {self._provider_token()}",
            "apns-topic": payload.topic,
        }
        result = ApnsSendResult()
        for device in devices:
            try:
                response = self._client.post(f"/3/device/{device}", json=body, headers=headers)
            except httpx.HTTPError as exc:
                result.failed.append(ApnsRejection(device=device, status=None, reason=str(exc)))
                continue
            if response.status_code == 200:
                result.sent.append(device)
            else:
                result.failed.append(
                    ApnsRejection(device=device, status=response.status_code, reason=_rejection_reason(response))
                )
        return result

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._client.close()


class ApnsProvider:
    def __init__(
        self,
        *,
        key_path: str | None,
        key_id: str | None,
        team_id: str | None,
        production: bool = True,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key_path = key_path
        self.key_id = key_id
        self.team_id = team_id
        self.production = production
        self.timeout = timeout
        self._transport = transport
        self._lock = threading.Lock()
        self._signing_key: str | None = None
        self._cached_token: str | None = None
        self._token_issued_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApnsProvider":
        return cls(
            key_path=settings.apns_key_path,
            key_id=settings.apns_key_id,
            team_id=settings.apns_team_id,
            production=settings.apns_production,
            timeout=settings.apns_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.key_path and self.key_id and self.team_id)

    @property
    def base_url(self) -> str:
        return APNS_PRODUCTION_URL if self.production else APNS_SANDBOX_URL

    def _load_signing_key(self) -> str:
        if self._signing_key is None:
            path = Path(self.key_path or "")
            if not self.key_path or not path.is_file():
                raise ApnsConfigurationError(f"APNs signing key not found at '{self.key_path}'")
            self._signing_key = path.read_text(encoding="utf-8")
        return self._signing_key

    def provider_token(self) -> str:
        with self._lock:
            now = time.time()
            if self._cached_token and now - self._token_issued_at < TOKEN_REFRESH_SECONDS:
                return self._cached_token
            self._cached_token = jwt.encode(
                {"iss": self.team_id, "iat": int(now)},
                self._load_signing_key(),
                algorithm="ES256",
                headers={"kid": self.key_id},
            )
            self._token_issued_at = now
            return self._cached_token

    def open_session(self) -> ApnsSession:
        if not self.configured:
            raise ApnsConfigurationError("APNs credentials (key path, key id, team id) are not configured")
        # Fail before opening a connection if the key cannot be read.
        self.provider_token()
        client = httpx.Client(
            base_url=self.base_url,
            http2=True,
            timeout=self.timeout,
            transport=self._transport,
            headers={"apns-push-type": "alert", "apns-priority": "10"},
        )
        logger.info("APNs session opened against %s", self.base_url)
        return ApnsSession(client, self.provider_token)
