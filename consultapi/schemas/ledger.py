from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class Order(BaseModel):
    """원장 항목"""

    id: int
    payer_id: int
    advisor_id: Optional[int] = None
    request_id: Optional[int] = None
    service_type: str
    status: str
    gross_amount: int
    net_amount: Optional[int] = None
    platform_fee: Optional[int] = None
    advisor_payout: Optional[int] = None
    currency: str
    gateway_reference: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReservePaymentRequest(BaseModel):
    amount: int = Field(..., gt=0, description="결제 예약 금액 (fils)")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class ReleasePaymentRequest(BaseModel):
    platform_fee_bps: Optional[int] = Field(None, ge=0, le=10000)


class ReservationResponse(BaseModel):
    request_id: int
    status: str
    order: Order


class ReleaseResponse(BaseModel):
    request_id: int
    status: str
    gross_amount: int
    platform_fee: int
    advisor_payout: int
    currency: str
