from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from opsdesk.models import (
    AMCContract,
    Complaint,
    ComplaintStatus,
    Estimate,
    EstimateStatus,
    Item,
    Order,
    OrderStatus,
    PaymentStatus,
    RMARecord,
    RMAStatus,
    StockTransaction,
    StockTransactionStatus,
    User,
    UserStatus,
)
from opsdesk.services.amc_service import contract_status, is_amc_active
from opsdesk.services.stock_service import get_engineers, get_low_stock_items, get_stock_valuation

OPEN_JOB_STATUSES = frozenset({ComplaintStatus.OPEN, ComplaintStatus.IN_PROGRESS, ComplaintStatus.PENDING_PARTS})
CLOSED_JOB_STATUSES = frozenset({ComplaintStatus.COMPLETED, ComplaintStatus.DELIVERED})
AWAITING_ESTIMATE_STATUSES = frozenset({EstimateStatus.DRAFT, EstimateStatus.SENT})
RECENT_LIMIT = 4


def _all(db: Session, model) -> list:
    return db.execute(select(model)).scalars().all()


def get_dashboard_summary(db: Session) -> dict:
    """Shop-wide figures for the landing page.

    Includes the four newest orders and the four most recently opened
    jobs that are still open.
    """
    orders = _all(db, Order)
    estimates = _all(db, Estimate)
    complaints = _all(db, Complaint)
    rmas = _all(db, RMARecord)
    contracts = _all(db, AMCContract)
    users = _all(db, User)

    issued_stock = db.execute(
        select(func.count())
        .select_from(StockTransaction)
        .where(StockTransaction.status == StockTransactionStatus.ISSUED)
    ).scalar_one()
    total_items = db.execute(select(func.count()).select_from(Item)).scalar_one()

    recent_orders = sorted(orders, key=lambda order: (order.date, order.id), reverse=True)[:RECENT_LIMIT]
    active_jobs = sorted(
        (complaint for complaint in complaints if complaint.status in OPEN_JOB_STATUSES),
        key=lambda complaint: (complaint.created_date, complaint.id),
        reverse=True,
    )[:RECENT_LIMIT]

    return {
        'total_order_value': sum((order.total or Decimal('0') for order in orders), Decimal('0')),
        'pending_orders': sum(
            1 for order in orders if order.payment_status in (PaymentStatus.PENDING, PaymentStatus.PARTIAL)
        ),
        'completed_orders': sum(1 for order in orders if order.status == OrderStatus.COMPLETED),
        'pending_estimates': sum(1 for estimate in estimates if estimate.status in AWAITING_ESTIMATE_STATUSES),
        'total_estimate_value': sum((estimate.total or Decimal('0') for estimate in estimates), Decimal('0')),
        'open_complaints': sum(1 for complaint in complaints if complaint.status in OPEN_JOB_STATUSES),
        'in_progress_jobs': sum(1 for complaint in complaints if complaint.status == ComplaintStatus.IN_PROGRESS),
        'completed_jobs': sum(1 for complaint in complaints if complaint.status in CLOSED_JOB_STATUSES),
        'active_rma': sum(1 for rma in rmas if rma.status != RMAStatus.DELIVERED),
        'rma_inbox': sum(1 for rma in rmas if rma.status == RMAStatus.INBOX),
        'active_amc': sum(1 for amc in contracts if is_amc_active(amc)),
        'expiring_amc': sum(1 for amc in contracts if is_amc_active(amc) and contract_status(amc) == 'Expiring'),
        'low_stock_count': len(get_low_stock_items(db)),
        'stock_value': get_stock_valuation(db)['total_value'],
        'issued_stock': issued_stock,
        'active_users': sum(1 for user in users if user.status == UserStatus.ACTIVE),
        'engineers': len(get_engineers(db)),
        'total_items': total_items,
        'recent_orders': [order.to_record() for order in recent_orders],
        'active_jobs': [complaint.to_record() for complaint in active_jobs],
    }
