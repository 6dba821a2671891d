from dataclasses import dataclass
from typing import Any, Iterable

from repairdesk.models.enums import PushChannel


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one provider call. ``error`` is set only when the call itself failed."""

    batch_index: int
    channel: PushChannel
    size: int
    success_count: int = 0
    failure_count: int = 0
    details: tuple[dict[str, Any], ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def delivered(
        cls,
        batch_index: int,
        channel: PushChannel,
        *,
        size: int,
        success_count: int,
        failure_count: int,
        details: Iterable[dict[str, Any]] = (),
    ) -> "BatchResult":
        return cls(
            batch_index=batch_index,
            channel=channel,
            size=size,
            success_count=success_count,
            failure_count=failure_count,
            details=tuple(details),
        )

    @classmethod
    def failed(cls, batch_index: int, channel: PushChannel, *, size: int, error: str) -> "BatchResult":
        return cls(batch_index=batch_index, channel=channel, size=size, error=error or "Unknown error")

    def as_response(self) -> dict[str, Any]:
        if self.error is not None:
            return {"batch": self.batch_index, "type": self.channel.value, "error": self.error}
        return {
            "batch": self.batch_index,
            "type": self.channel.value,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "details": list(self.details),
        }


@dataclass(frozen=True)
class DeliveryReport:
    total_tokens: int
    total_success: int
    total_failure: int
    batch_results: tuple[BatchResult, ...] = ()

    @property
    def includes_apns(self) -> bool:
        return any(r.channel is PushChannel.APNS for r in self.batch_results)

    @classmethod
    def empty(cls) -> "DeliveryReport":
        return cls(total_tokens=0, total_success=0, total_failure=0)


def aggregate(batch_results: Iterable[BatchResult], total_tokens: int) -> DeliveryReport:
    results = tuple(batch_results)
    return DeliveryReport(
        total_tokens=total_tokens,
        total_success=sum(r.success_count for r in results if r.ok),
        total_failure=sum(r.failure_count for r in results if r.ok),
        batch_results=results,
    )
