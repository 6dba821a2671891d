from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Account fields are checked by the identity service, so a malformed body
# still reaches the auth gate and fails there with the handler's own error.
class StaffCreateRequest(BaseModel):
    email: str | None = Field(default=None, examples=["tech@example.com"])
    password: str | None = Field(default=None, examples=["Pass123!"])
    name: str | None = Field(default=None, examples=["Asha"])
    mobile: str | None = Field(default=None, examples=["+919800000001"])
    permissions: list[str] = Field(default_factory=list, examples=[["repairs:write"]])
    business_id: str | None = Field(default=None, examples=["biz-001"])
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(BaseModel):
    success: bool = True
    message: str | None = None
    error: str | None = None
