from datetime import datetime
from typing import Optional, Any, Dict
from pydantic import BaseModel, Field

class TransactionStatus:
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

UNMATCHED_CALLBACK = "callback_unmatched"

class TransactionDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    phone: Optional[str] = None
    amount: Optional[float] = None
    account_reference: Optional[str] = None
    description: Optional[str] = None
    request_payload: Optional[Dict[str, Any]] = None
    response_payload: Optional[Dict[str, Any]] = None
    callback_payload: Optional[Dict[str, Any]] = None
    status: str = TransactionStatus.PENDING # pending, success, failed
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
