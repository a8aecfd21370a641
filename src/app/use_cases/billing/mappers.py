"""Entity to DTO conversions shared by billing use cases"""

from datetime import datetime
from src.domain.billing_transaction import BillingTransaction
from src.domain.credit_account import ClientCreditAccount
from src.domain.credit_lot import CreditLot
from .dtos import (
    AmountDTO,
    TransactionDetailDTO,
    RefundInfoDTO,
    PayoutInfoDTO,
    CreditLotDTO,
    FreeTrialStatusDTO,
    LifetimeStatsDTO,
)


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else value


def to_amount_dto(transaction: BillingTransaction) -> AmountDTO:
    return AmountDTO(
        gross=transaction.gross_amount,
        platform_fee=transaction.platform_fee,
        processing_fee=transaction.processing_fee,
        net=transaction.net_amount,
        currency=transaction.currency,
    )


def to_transaction_dto(transaction: BillingTransaction) -> TransactionDetailDTO:
    refund = None
    if transaction.refund_status is not None:
        refund = RefundInfoDTO(
            refund_amount=transaction.refund_amount,
            refund_status=_enum_value(transaction.refund_status),
            refund_reason=transaction.refund_reason,
            refunded_at=transaction.refunded_at,
            gateway_refund_id=transaction.gateway_refund_id,
        )

    return TransactionDetailDTO(
        transaction_id=transaction.transaction_id,
        tenant_id=transaction.tenant_id,
        client_id=transaction.client_id,
        consultant_id=transaction.consultant_id,
        consultation_id=transaction.consultation_id,
        package_id=transaction.package_id,
        transaction_type=_enum_value(transaction.transaction_type),
        description=transaction.description,
        amount=to_amount_dto(transaction),
        payment_intent_id=transaction.payment_intent_id,
        customer_id=transaction.customer_id,
        charge_id=transaction.charge_id,
        receipt_url=transaction.receipt_url,
        status=_enum_value(transaction.status),
        failure_reason=transaction.failure_reason,
        refund=refund,
        payout=PayoutInfoDTO(
            scheduled=transaction.payout_scheduled,
            scheduled_date=transaction.payout_scheduled_date,
            payout_batch_id=transaction.payout_batch_id,
            amount=transaction.payout_amount,
        ),
        created_at=transaction.created_at,
        completed_at=transaction.completed_at,
    )


def to_lot_dto(lot: CreditLot) -> CreditLotDTO:
    return CreditLotDTO(
        package_id=lot.package_id,
        package_name=lot.package_name,
        credits_added=lot.credits_added,
        credits_used=lot.credits_used,
        credits_remaining=lot.credits_remaining,
        purchase_date=lot.purchase_date,
        expiry_date=lot.expiry_date,
        billing_transaction_id=lot.billing_transaction_id,
        status=_enum_value(lot.status),
    )


def to_free_trial_dto(
    account: ClientCreditAccount,
    duration_minutes: int | None = None,
    now: datetime | None = None,
) -> FreeTrialStatusDTO:
    return FreeTrialStatusDTO(
        eligible=account.free_trial_available(now),
        used=account.free_trial_used,
        expired=account.free_trial_expired(now),
        expires_at=account.free_trial_expires_at,
        duration_minutes=duration_minutes,
    )


def to_lifetime_dto(account: ClientCreditAccount) -> LifetimeStatsDTO:
    return LifetimeStatsDTO(
        total_credits_purchased=account.total_credits_purchased,
        total_credits_used=account.total_credits_used,
        total_spent=account.total_spent,
        total_consultations=account.total_consultations,
        last_consultation_at=account.last_consultation_at,
    )
