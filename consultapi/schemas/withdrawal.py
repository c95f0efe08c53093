from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime


class WithdrawalRequest(BaseModel):
    id: int
    advisor_id: int
    amount: int
    status: str
    bank_details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawalCreateRequest(BaseModel):
    amount: int = Field(..., description="출금 금액 (fils)")
    bank_details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=1000)


class WithdrawalRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BalanceResponse(BaseModel):
    advisor_id: int
    available_balance: int = Field(..., description="출금 가능 잔액 (fils)")
    currency: str
