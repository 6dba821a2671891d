import json
import logging
import threading
import time
import uuid
from collections import defaultdict
from typing import DefaultDict

from fastapi import Request
from jose import jwt
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger("repairdesk.observability")


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _labels(**labels: str) -> str:
    return ",".join(f'{name}="{_escape_label(str(value))}"' for name, value in labels.items())


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.http_requests_total = 0
        self.http_request_errors_5xx_total = 0
        self.http_request_duration_ms_sum = 0.0
        self.http_request_duration_ms_count = 0
        self.requests_by_route_method_status: DefaultDict[tuple[str, str, int], int] = defaultdict(int)

        self.push_batches: DefaultDict[tuple[str, str], int] = defaultdict(int)
        self.push_tokens: DefaultDict[tuple[str, str], int] = defaultdict(int)

    def observe(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        include_global: bool = True,
    ) -> None:
        with self._lock:
            if include_global:
                self.http_requests_total += 1
                if status_code >= 500:
                    self.http_request_errors_5xx_total += 1
                self.http_request_duration_ms_sum += duration_ms
                self.http_request_duration_ms_count += 1
            self.requests_by_route_method_status[(path, method, status_code)] += 1

    def observe_push_batch(self, channel: str, *, ok: bool, success: int, failure: int, size: int) -> None:
        with self._lock:
            self.push_batches[(channel, "ok" if ok else "error")] += 1
            if ok:
                self.push_tokens[(channel, "success")] += success
                self.push_tokens[(channel, "failure")] += failure
            else:
                self.push_tokens[(channel, "not_attempted")] += size

    def render_prometheus(self) -> str:
        lines: list[str] = []
        with self._lock:
            for name, kind, help_text, value in (
                ("http_requests_total", "counter", "Total number of HTTP requests processed.", self.http_requests_total),
                ("http_request_errors_5xx_total", "counter", "Total number of HTTP 5xx responses.", self.http_request_errors_5xx_total),
                ("http_request_duration_ms_sum", "counter", "Sum of request durations in milliseconds.", f"{self.http_request_duration_ms_sum:.3f}"),
                ("http_request_duration_ms_count", "counter", "Number of observed request durations.", self.http_request_duration_ms_count),
            ):
                lines.append(f"# HELP {name} {help_text}")
                lines.append(f"# TYPE {name} {kind}")
                lines.append(f"{name} {value}")

            lines.append("# HELP http_requests_by_route_method_status HTTP requests split by route, method and status code.")
            lines.append("# TYPE http_requests_by_route_method_status counter")
            for (path, method, status_code), count in sorted(self.requests_by_route_method_status.items()):
                lines.append(
                    f"http_requests_by_route_method_status{{{_labels(path=path, method=method, status=status_code)}}} {count}"
                )

            lines.append("# HELP push_batches_total Provider calls split by channel and outcome.")
            lines.append("# TYPE push_batches_total counter")
            for (channel, outcome), count in sorted(self.push_batches.items()):
                lines.append(f"push_batches_total{{{_labels(channel=channel, outcome=outcome)}}} {count}")

            lines.append("# HELP push_tokens_total Device tokens split by channel and delivery outcome.")
            lines.append("# TYPE push_tokens_total counter")
            for (channel, outcome), count in sorted(self.push_tokens.items()):
                lines.append(f"push_tokens_total{{{_labels(channel=channel, outcome=outcome)}}} {count}")

        return "\n".join(lines) + "\n"


metrics_registry = MetricsRegistry()


def _extract_subject_from_auth(request: Request) -> str | None:
    # Firebase ID tokens carry the uid in "sub"; signature is checked later by the route.
    auth = request.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except Exception:
        return None
    sub = claims.get("sub") or claims.get("user_id")
    return str(sub) if sub else None


class ObservabilityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, registry: MetricsRegistry, exclude_paths: set[str] | None = None) -> None:
        super().__init__(app)
        self.registry = registry
        self.exclude_paths = exclude_paths or set()

    def _log(self, level: int, request_id: str, request: Request, status_code: int, duration_ms: float) -> None:
        logger.log(
            level,
            json.dumps(
                {
                    "event": "http_request",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 3),
                    "client_ip": request.client.host if request.client else None,
                    "caller_uid": _extract_subject_from_auth(request),
                },
                ensure_ascii=False,
            ),
            exc_info=status_code >= 500 and level >= logging.ERROR,
        )

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - started) * 1000.0
            self.registry.observe(request.method, path, 500, duration_ms, include_global=path not in self.exclude_paths)
            self._log(logging.ERROR, request_id, request, 500, duration_ms)
            raise

        response.headers["X-Request-ID"] = request_id
        duration_ms = (time.perf_counter() - started) * 1000.0
        self.registry.observe(
            request.method,
            path,
            response.status_code,
            duration_ms,
            include_global=path not in self.exclude_paths,
        )
        self._log(logging.INFO, request_id, request, response.status_code, duration_ms)
        return response
