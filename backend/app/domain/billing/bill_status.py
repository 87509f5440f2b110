"""
Bill status derivation.

Status is never stored; it is a pure function of the bill's net amount,
paid amount and voided flag.
"""

from backend.app.models.billing_enums import BillStatus


def derive_bill_status(net_amount: int, paid_amount: int, voided: bool) -> BillStatus:
    if voided:
        return BillStatus.VOIDED
    if paid_amount == net_amount:
        # Covers a fully discounted bill (0 == 0)
        return BillStatus.PAID
    if 0 < paid_amount < net_amount:
        return BillStatus.PARTIAL
    return BillStatus.ACTIVE


def is_locked(status: BillStatus) -> bool:
    """PAID and VOIDED bills reject edits and payments."""
    return status in (BillStatus.PAID, BillStatus.VOIDED)


def is_outstanding(status: BillStatus) -> bool:
    """Bills that count towards the customer's balance."""
    return status in (BillStatus.ACTIVE, BillStatus.PARTIAL)
