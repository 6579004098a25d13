"""Gateway webhook Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InvoiceData(BaseModel):
    """The ``data`` object of an invoice callback."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)  # gateway transaction id
    external_id: str = Field(..., min_length=1)
    status: str | None = None
    amount: float | None = None
    paid_amount: float | None = None


class InvoiceWebhook(BaseModel):
    """Invoice callback body."""

    model_config = ConfigDict(extra="allow")

    event: str = Field(..., min_length=1)
    data: InvoiceData
    created: str | None = None
    id: str | None = None  # delivery id

    def raw_data(self) -> dict[str, Any]:
        return self.data.model_dump()


class WebhookResponse(BaseModel):
    """Body returned for every accepted delivery."""

    message: str
    external_id: str
    event: str
    payment_status: str | None = None
    booking_status: str | None = None


class WebhookError(BaseModel):
    error: str
