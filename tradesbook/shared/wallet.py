"""Installer wallet bookkeeping shared by the booking and installer domains"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Installer, JobAssignment, WalletTransaction

logger = logging.getLogger(__name__)


class InsufficientBalanceError(Exception):
    def __init__(self, balance: float, required: float):
        super().__init__(f"Insufficient wallet balance: €{balance:.2f} available, €{required:.2f} required")
        self.balance = balance
        self.required = required


def record_transaction(
    db: Session,
    installer: Installer,
    type: str,
    amount: float,
    description: str,
    job_assignment_id: Optional[int] = None,
) -> WalletTransaction:
    """Add a ledger row; negative amounts leave the wallet. Caller commits."""
    transaction = WalletTransaction(
        installer_id=installer.id,
        type=type,
        amount=round(amount, 2),
        description=description,
        job_assignment_id=job_assignment_id,
        status="completed",
    )
    db.add(transaction)
    return transaction


def charge_lead_fee(db: Session, installer: Installer, assignment: JobAssignment, booking_ref: str) -> None:
    """
    Debit the lead fee for an accepted job. Caller commits.

    Raises:
        InsufficientBalanceError: when the wallet cannot cover the fee
    """
    fee = assignment.lead_fee or 0
    balance = installer.wallet_balance or 0
    if balance < fee:
        raise InsufficientBalanceError(balance, fee)

    installer.wallet_balance = round(balance - fee, 2)
    installer.wallet_total_spent = round((installer.wallet_total_spent or 0) + fee, 2)
    assignment.lead_fee_status = "paid"
    record_transaction(
        db, installer, "lead_purchase", -fee, f"Lead fee for booking {booking_ref}", assignment.id
    )


def refund_lead_fee(db: Session, installer: Installer, assignment: JobAssignment, booking_ref: str) -> float:
    """Return a paid lead fee to the wallet. Caller commits."""
    if assignment.lead_fee_status != "paid" or not assignment.lead_fee:
        return 0.0
    fee = assignment.lead_fee
    installer.wallet_balance = round((installer.wallet_balance or 0) + fee, 2)
    installer.wallet_total_spent = round(max((installer.wallet_total_spent or 0) - fee, 0), 2)
    assignment.lead_fee_status = "refunded"
    record_transaction(
        db, installer, "refund", fee, f"Lead fee refund for cancelled booking {booking_ref}", assignment.id
    )
    logger.info(f"✅ Refunded €{fee:.2f} lead fee to installer {installer.id} ({booking_ref})")
    return fee


def add_credits(db: Session, installer: Installer, amount: float, description: str = "Wallet top-up") -> WalletTransaction:
    installer.wallet_balance = round((installer.wallet_balance or 0) + amount, 2)
    transaction = record_transaction(db, installer, "credit_topup", amount, description)
    db.commit()
    db.refresh(installer)
    return transaction
