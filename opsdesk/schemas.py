from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class IssueStockIn(BaseModel):
    item_id: int
    user_id: int
    quantity: int
    issued_by: int | None = None
    serial_numbers: list[str] | None = None
    batch_number: str | None = None
    job_id: str | None = None
    notes: str | None = None


class ReturnStockIn(BaseModel):
    item_id: int
    user_id: int
    quantity: int
    issued_by: int | None = None
    serial_numbers: list[str] | None = None
    batch_number: str | None = None
    condition: str = 'Good'
    notes: str | None = None


class MarkUsedIn(BaseModel):
    job_id: str | None = None
    quantity: int | None = None


class SaveModelIn(BaseModel):
    name: str
    parts: list[Any] = Field(default_factory=list)


class RenewAMCIn(BaseModel):
    new_end_date: date
    new_amount: Decimal | None = None


class StatusIn(BaseModel):
    status: str


class OTPIn(BaseModel):
    otp: str


class LeaveApprovalIn(BaseModel):
    approver_name: str
    approver_role: str
    comments: str = ''


class LeaveRejectionIn(BaseModel):
    approver_name: str
    approver_role: str
    reason: str = ''


class LeaveBalanceIn(BaseModel):
    leave_type: str
    balance: float


class RegisterAdminIn(BaseModel):
    name: str
    email: str
    password: str
    mobile: str | None = None


class AdminRequestIn(BaseModel):
    name: str
    email: str
    mobile: str | None = None


class RegisterStaffIn(BaseModel):
    email: str
    password: str


class LoginIn(BaseModel):
    email: str
    password: str


class RejectRequestIn(BaseModel):
    reason: str | None = None
