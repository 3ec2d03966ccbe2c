"""Payment schemas (camelCase on the wire)."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutSessionRequest(_CamelModel):
    appointment_id: str = Field(..., min_length=1)
    service_id: str = Field(..., min_length=1)
    return_url: str | None = None


class CheckoutSessionResponse(_CamelModel):
    session_id: str
    url: str | None = None


class RefundRequest(_CamelModel):
    appointment_id: str = Field(..., min_length=1)
    reason: str | None = Field(default=None, max_length=500)


class RefundResponse(_CamelModel):
    success: bool = True
    refund_id: str
    refund_amount: float
    refund_percentage: int
    message: str


class WebhookAck(BaseModel):
    received: bool = True
