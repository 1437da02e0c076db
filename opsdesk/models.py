from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that store them naive."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class Base(DeclarativeBase):
    _private_fields = frozenset()

    def to_record(self) -> dict:
        return {
            key: _plain(getattr(self, key))
            for key in self.__mapper__.columns.keys()
            if key not in self._private_fields
        }


def _enum(enum_cls: type[Enum], name: str) -> SQLEnum:
    return SQLEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


class UserStatus(str, Enum):
    ACTIVE = 'Active'
    INACTIVE = 'Inactive'


class EstimateStatus(str, Enum):
    DRAFT = 'Draft'
    SENT = 'Sent'
    ACCEPTED = 'Accepted'
    CONVERTED = 'Converted'
    EXPIRED = 'Expired'


class OrderStatus(str, Enum):
    PENDING = 'Pending'
    COMPLETED = 'Completed'
    AMC_CONVERTED = 'AMC Converted'
    CANCELLED = 'Cancelled'


class PaymentStatus(str, Enum):
    PENDING = 'Pending'
    PARTIAL = 'Partial'
    PAID = 'Paid'


class AMCStatus(str, Enum):
    ACTIVE = 'Active'
    EXPIRED = 'Expired'
    CANCELLED = 'Cancelled'


class ComplaintStatus(str, Enum):
    OPEN = 'Open'
    IN_PROGRESS = 'In Progress'
    PENDING_PARTS = 'Pending Parts'
    COMPLETED = 'Completed'
    DELIVERED = 'Delivered'


class ComplaintPriority(str, Enum):
    LOW = 'Low'
    MEDIUM = 'Medium'
    HIGH = 'High'


class RMAStatus(str, Enum):
    INBOX = 'Inbox'
    IN_COMPANY = 'In-Company'
    OUTBOX = 'Outbox'
    DELIVERED = 'Delivered'


class StockTransactionType(str, Enum):
    ISSUE = 'issue'
    RETURN = 'return'


class StockTransactionStatus(str, Enum):
    ISSUED = 'issued'
    RETURNED = 'returned'
    USED = 'used'


class LeaveStatus(str, Enum):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'


class AdminRequestStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class Role(Base):
    __tablename__ = 'roles'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    permissions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Department(Base):
    __tablename__ = 'departments'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class Item(Base):
    __tablename__ = 'items'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    part_id: Mapped[str | None] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sku: Mapped[str | None] = mapped_column(String(64))
    category: Mapped[str | None] = mapped_column(Text)
    supplier: Mapped[str | None] = mapped_column(Text)
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    mrp: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    gst_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal('18'))
    warranty_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hsn_sac: Mapped[str | None] = mapped_column(String(32))
    stock_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    issued_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_level: Mapped[int | None] = mapped_column(Integer)
    location: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    audit_trail: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text)
    mobile: Mapped[str | None] = mapped_column(String(32))
    role: Mapped[str | None] = mapped_column(Text)
    role_id: Mapped[str | None] = mapped_column(String(64))
    department: Mapped[str | None] = mapped_column(Text)
    permissions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    leave_balance: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[UserStatus] = mapped_column(_enum(UserStatus, 'user_status'), nullable=False, default=UserStatus.ACTIVE)
    is_registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_login: Mapped[datetime | None] = mapped_column(UTCDateTime())


class Account(Base):
    __tablename__ = 'accounts'
    _private_fields = frozenset({'password_hash'})

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int | None] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    registered_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class AdminRequest(Base):
    __tablename__ = 'admin_requests'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    status: Mapped[AdminRequestStatus] = mapped_column(
        _enum(AdminRequestStatus, 'admin_request_status'), nullable=False, default=AdminRequestStatus.PENDING
    )
    requested_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    rejection_reason: Mapped[str | None] = mapped_column(Text)


class LoginSession(Base):
    __tablename__ = 'login_sessions'

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempted_email: Mapped[str] = mapped_column(Text, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    account_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor: Mapped[str | None] = mapped_column(Text)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class Notification(Base):
    __tablename__ = 'notifications'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict | None] = mapped_column(JSON)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class Estimate(Base):
    __tablename__ = 'estimates'

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    customer: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date | None] = mapped_column(Date)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[EstimateStatus] = mapped_column(
        _enum(EstimateStatus, 'estimate_status'), nullable=False, default=EstimateStatus.DRAFT
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    audit_trail: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class Order(Base):
    __tablename__ = 'orders'

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    estimate_id: Mapped[str | None] = mapped_column(String(32))
    amc_id: Mapped[str | None] = mapped_column(String(32))
    customer: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    status: Mapped[OrderStatus] = mapped_column(_enum(OrderStatus, 'order_status'), nullable=False, default=OrderStatus.PENDING)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus, 'payment_status'), nullable=False, default=PaymentStatus.PENDING
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class Addon(Base):
    __tablename__ = 'addons'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    gst: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal('18'))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Combination(Base):
    __tablename__ = 'combinations'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    parts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SavedModel(Base):
    __tablename__ = 'saved_models'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    parts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class AMCContract(Base):
    __tablename__ = 'amc_contracts'

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    qr_code_id: Mapped[str] = mapped_column(Text, nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(32))
    customer: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    device_serial: Mapped[str] = mapped_column(Text, nullable=False)
    device_name: Mapped[str | None] = mapped_column(Text)
    device_type: Mapped[str | None] = mapped_column(Text)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    amc_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    terms: Mapped[str | None] = mapped_column(Text)
    services_included: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[AMCStatus] = mapped_column(_enum(AMCStatus, 'amc_status'), nullable=False, default=AMCStatus.ACTIVE)
    renewal_reminders: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    service_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class Complaint(Base):
    __tablename__ = 'complaints'

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    customer: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    device: Mapped[str | None] = mapped_column(Text)
    serial: Mapped[str | None] = mapped_column(Text)
    issue: Mapped[str | None] = mapped_column(Text)
    service_type: Mapped[str | None] = mapped_column(String(32))
    department: Mapped[str | None] = mapped_column(Text)
    priority: Mapped[ComplaintPriority] = mapped_column(
        _enum(ComplaintPriority, 'complaint_priority'), nullable=False, default=ComplaintPriority.MEDIUM
    )
    status: Mapped[ComplaintStatus] = mapped_column(
        _enum(ComplaintStatus, 'complaint_status'), nullable=False, default=ComplaintStatus.OPEN
    )
    assigned_to: Mapped[str | None] = mapped_column(Text)
    amc_id: Mapped[str | None] = mapped_column(String(32))
    is_amc_covered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parts_used: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    base_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    estimated_completion: Mapped[date | None] = mapped_column(Date)
    created_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed_date: Mapped[date | None] = mapped_column(Date)
    delivered_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class RMARecord(Base):
    __tablename__ = 'rma_records'
    _private_fields = frozenset({'otp'})

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    customer: Mapped[str] = mapped_column(Text, nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    part_name: Mapped[str | None] = mapped_column(Text)
    serial: Mapped[str | None] = mapped_column(Text)
    purchase_date: Mapped[date | None] = mapped_column(Date)
    warranty_years: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    source: Mapped[str | None] = mapped_column(Text)
    bill_no: Mapped[str | None] = mapped_column(Text)
    service_center: Mapped[str | None] = mapped_column(Text)
    defect_description: Mapped[str | None] = mapped_column(Text)
    replacement_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RMAStatus] = mapped_column(_enum(RMAStatus, 'rma_status'), nullable=False, default=RMAStatus.INBOX)
    inbox_date: Mapped[date | None] = mapped_column(Date)
    in_company_date: Mapped[date | None] = mapped_column(Date)
    outbox_date: Mapped[date | None] = mapped_column(Date)
    delivered_date: Mapped[date | None] = mapped_column(Date)
    otp: Mapped[str] = mapped_column(String(8), nullable=False, default='')
    otp_generated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    otp_verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_date: Mapped[date] = mapped_column(Date, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class StockTransaction(Base):
    __tablename__ = 'stock_transactions'

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    type: Mapped[StockTransactionType] = mapped_column(_enum(StockTransactionType, 'stock_transaction_type'), nullable=False)
    status: Mapped[StockTransactionStatus] = mapped_column(
        _enum(StockTransactionStatus, 'stock_transaction_status'), nullable=False
    )
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str | None] = mapped_column(Text)
    item_sku: Mapped[str | None] = mapped_column(String(64))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_name: Mapped[str | None] = mapped_column(Text)
    issued_by: Mapped[int | None] = mapped_column(Integer)
    issued_by_name: Mapped[str | None] = mapped_column(Text)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    serial_numbers: Mapped[list | None] = mapped_column(JSON)
    batch_number: Mapped[str | None] = mapped_column(Text)
    job_id: Mapped[str | None] = mapped_column(String(32))
    notes: Mapped[str] = mapped_column(Text, nullable=False, default='')
    condition: Mapped[str] = mapped_column(String(32), nullable=False, default='Good')


class LeaveRequest(Base):
    __tablename__ = 'leave_requests'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    employee: Mapped[str | None] = mapped_column(Text)
    leave_type: Mapped[str] = mapped_column(String(32), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    half_day: Mapped[str | None] = mapped_column(String(32))
    days: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    applied_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[LeaveStatus] = mapped_column(_enum(LeaveStatus, 'leave_status'), nullable=False, default=LeaveStatus.PENDING)
    approval_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    balance_deducted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())


class Holiday(Base):
    __tablename__ = 'holidays'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[str | None] = mapped_column(String(32))


class LeavePolicy(Base):
    __tablename__ = 'leave_policies'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)


class IdSequence(Base):
    __tablename__ = 'id_sequences'

    prefix: Mapped[str] = mapped_column(String(16), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
