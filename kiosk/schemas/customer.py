"""
Customer Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class CustomerResponse(BaseModel):
    remote_id: int
    venue_id: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    loyalty_member: bool
    synced_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class LookupResponse(BaseModel):
    found: bool
    customer: Optional[CustomerResponse] = None

class CustomerCreate(BaseModel):
    first_name: str
    last_name: Optional[str] = ""
    telephone: str
    email: Optional[str] = None
    loyalty_member: bool = False
    marketing_opt_in: Optional[bool] = None
    # Demographics from ID scan
    address1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[str] = None  # MMDDYYYY
    gender: Optional[str] = None  # M, F, X

class CustomerUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[str] = None
    loyalty_member: Optional[bool] = None
    marketing_opt_in: Optional[bool] = None
    address1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None

class RemoteCustomerResponse(BaseModel):
    remote_id: int
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    loyalty_member: bool

    class Config:
        from_attributes = True
