"""Credit clawback for refunded package purchases

Shared by RefundPayment and RepairRefundClawbacks. Runs inside the
caller's unit of work; the caller commits.
"""

import logging
from datetime import datetime
from typing import Optional
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.billing_transaction import BillingTransaction
from src.domain.credit_lot import CreditLotStatus

logger = logging.getLogger(__name__)


class ClawbackTargetMissing(Exception):
    """The client account of a refunded purchase could not be loaded"""


async def claw_back_credits(
    account_repo: CreditAccountRepository,
    transaction: BillingTransaction,
    now: Optional[datetime] = None,
) -> Optional[int]:
    """
    Remove the credits granted by a refunded purchase

    Balance changes always mirror lot changes, so available_credits stays
    equal to the credits remaining in active lots:
    - credits still in the purchase's lot leave with it; an expired lot's
      leftovers were already removed by expiry and are not counted again
    - credits already consumed from the lot are drained from the client's
      other active lots, oldest first; whatever those cannot cover is
      logged as an uncovered deficit and forgiven

    The purchase's lot ends zeroed and marked refunded.

    Returns:
        Credits removed from the balance, or None when there was nothing to
        claw back (no lot, or lot already refunded)

    Raises:
        ClawbackTargetMissing: When the lot exists but the account does not
        StaleAccountError: From the version checked account save
    """
    lot = await account_repo.get_lot_by_billing_transaction(transaction.transaction_id)
    if lot is None or lot.status == CreditLotStatus.REFUNDED:
        return None

    account = await account_repo.get_by_client_id(transaction.client_id)
    if account is None:
        raise ClawbackTargetMissing(
            f"Client {transaction.client_id} not found for refunded transaction {transaction.transaction_id}"
        )

    now = now or datetime.utcnow()
    removed = 0 if lot.status == CreditLotStatus.EXPIRED else lot.credits_remaining

    deficit = lot.credits_used
    if deficit > 0:
        for other in await account_repo.get_lots(account.id):
            if deficit == 0:
                break
            if other.id == lot.id or other.status != CreditLotStatus.ACTIVE or other.credits_remaining == 0:
                continue

            drained = min(deficit, other.credits_remaining)
            other.credits_used += drained
            other.credits_remaining -= drained
            if other.credits_remaining == 0:
                other.status = CreditLotStatus.DEPLETED
            await account_repo.update_lot(other)

            removed += drained
            deficit -= drained

    if deficit > 0:
        logger.warning(
            f"Clawback deficit for client {account.client_id}: transaction "
            f"{transaction.transaction_id} consumed {lot.credits_used} credits, "
            f"{deficit} not covered by other lots"
        )

    account.available_credits = max(0, account.available_credits - removed)

    lot.credits_remaining = 0
    lot.status = CreditLotStatus.REFUNDED
    lot.refunded_at = now
    await account_repo.update_lot(lot)
    await account_repo.save(account)

    logger.info(
        f"Clawed back {removed} credits from client {account.client_id} "
        f"for transaction {transaction.transaction_id}"
    )
    return removed
