from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Any, Dict
from datetime import datetime
from shared.security_config import sanitize_input, normalize_msisdn

class StkPushRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: float = Field(..., gt=0)
    phone: str = Field(..., min_length=1)
    account_reference: str = Field("payment", alias="accountReference", max_length=64)
    description: str = Field("Payment", max_length=128)

    @field_validator('phone')
    def phone_is_msisdn(cls, v):
        msisdn = normalize_msisdn(v)
        if len(msisdn) < 9:
            raise ValueError('Phone number must contain at least 9 digits')
        return msisdn

    @field_validator('account_reference', 'description')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class StkPushResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]
    tx_id: Optional[str] = None

class CallbackAck(BaseModel):
    success: bool = True

class TransactionResponse(BaseModel):
    id: str
    phone: Optional[str] = None
    amount: Optional[float] = None
    account_reference: Optional[str] = None
    description: Optional[str] = None
    response_payload: Optional[Dict[str, Any]] = None
    callback_payload: Optional[Dict[str, Any]] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

class TransactionStatusResponse(BaseModel):
    id: str
    status: str
    result_desc: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
