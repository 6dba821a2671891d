from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Required fields are optional here on purpose: the handlers answer missing
# values with their own error shape instead of a 422.
class BroadcastNotificationRequest(_CamelModel):
    business_id: str | None = Field(default=None, examples=["biz-001"])
    title: str | None = Field(default=None, examples=["Holiday hours"])
    message: str | None = Field(default=None, examples=["We are closed on Monday."])
    image_url: str | None = Field(default=None, examples=["https://example.com/banner.png"])
    data: dict[str, Any] | None = Field(default=None, examples=[{"screen": "offers"}])


class StatusUpdateRequest(_CamelModel):
    mobile: str | None = Field(default=None, examples=["+919800000000"])
    title: str | None = Field(default=None, examples=["Repair ready"])
    message: str | None = Field(default=None, examples=["Your phone is ready for pickup."])
    image_url: str | None = None
    data: dict[str, Any] | None = Field(default=None, examples=[{"repairId": "R-42"}])


class BatchResultOut(_CamelModel):
    batch: int
    type: str
    success_count: int | None = None
    failure_count: int | None = None
    details: list[dict[str, Any]] | None = None
    error: str | None = None


class NotificationResponse(_CamelModel):
    success: bool
    message: str | None = None
    error: str | None = None
    total_tokens: int | None = None
    total_success: int | None = None
    total_failure: int | None = None
    results: list[BatchResultOut] | None = None
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Notification sent to 2 devices (includes APNs)",
                "totalTokens": 2,
                "totalSuccess": 2,
                "totalFailure": 0,
                "results": [
                    {"batch": 1, "type": "FCM", "successCount": 1, "failureCount": 0, "details": []},
                    {"batch": 1, "type": "APNs", "successCount": 1, "failureCount": 0, "details": []},
                ],
            }
        }
    )
