"""
Integration tests for the payment lifecycle against a real SQLite database

Use cases are wired with the SQLAlchemy repositories exactly as the API
and workers wire them; only the payment gateway is faked.
"""

import asyncio
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace

from src.adapter.repositories.billing_transaction_repository import SqlAlchemyBillingTransactionRepository
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.repositories.consultation_package_repository import SqlAlchemyConsultationPackageRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.errors import ErrorCode
from src.app.use_cases.billing import (
    CreatePaymentIntent,
    ConfirmPayment,
    DeductConsultationCredit,
    RefundPayment,
    RepairRefundClawbacks,
    ExpireCreditLots,
    SchedulePayouts,
    RunPayoutBatch,
    FeePolicy,
    CreatePaymentIntentCommandDTO,
    DeductCreditCommandDTO,
    RefundCommandDTO,
)
from src.domain.billing_transaction import TransactionStatus
from src.domain.credit_lot import CreditLotStatus


def wire(session, gateway):
    uow = SqlAlchemyUnitOfWork(session)
    transactions = SqlAlchemyBillingTransactionRepository(session)
    accounts = SqlAlchemyCreditAccountRepository(session)
    packages = SqlAlchemyConsultationPackageRepository(session)
    schedule_payouts = SchedulePayouts(uow, transactions, minimum_payout_amount=5000)

    return SimpleNamespace(
        transactions=transactions,
        accounts=accounts,
        create_intent=CreatePaymentIntent(uow, transactions, accounts, packages, gateway, FeePolicy()),
        confirm=ConfirmPayment(uow, transactions, accounts, packages, gateway),
        deduct=DeductConsultationCredit(uow, accounts),
        refund=RefundPayment(uow, transactions, accounts, gateway),
        repair=RepairRefundClawbacks(uow, transactions, accounts),
        expire=ExpireCreditLots(uow, accounts),
        schedule_payouts=schedule_payouts,
        run_payouts=RunPayoutBatch(transactions, schedule_payouts),
    )


def purchase_command(**overrides):
    values = dict(
        tenant_id="tenant_1",
        client_id="client_1",
        amount=10000,
        package_id="pkg_5",
        consultant_id="consultant_1",
        created_by="user_1",
    )
    values.update(overrides)
    return CreatePaymentIntentCommandDTO(**values)


async def buy_package(session_factory, gateway, **overrides):
    """Create and confirm a package purchase; returns (intent, confirmation)"""
    async with session_factory() as session:
        app = wire(session, gateway)
        intent = (await app.create_intent.execute(purchase_command(**overrides))).value
        gateway.succeed(intent.payment_intent_id)
        confirmed = (await app.confirm.execute(intent.payment_intent_id)).value
    return intent, confirmed


async def load_account(session_factory, client_id="client_1"):
    async with session_factory() as session:
        accounts = SqlAlchemyCreditAccountRepository(session)
        account = await accounts.get_by_client_id(client_id)
        lots = await accounts.get_lots(account.id)
    return account, lots


async def backdate_expiry(session_factory, transaction_id):
    """Make the lot of a purchase due for expiry"""
    async with session_factory() as session:
        accounts = SqlAlchemyCreditAccountRepository(session)
        lot = await accounts.get_lot_by_billing_transaction(transaction_id)
        lot.expiry_date = datetime.utcnow() - timedelta(days=1)
        await accounts.update_lot(lot)
        await session.commit()


async def assert_credits_conserved(session_factory, client_id="client_1"):
    account, lots = await load_account(session_factory, client_id)
    active = sum(lot.credits_remaining for lot in lots if lot.status == CreditLotStatus.ACTIVE)
    assert account.available_credits == active
    return account, lots


@pytest.mark.asyncio
class TestConcurrentConfirmation:
    async def test_two_concurrent_confirmations_credit_the_package_once(self, session_factory, seed, gateway):
        """
        Given a succeeded payment for a 5-credit package
        When two confirmations for the same payment intent run concurrently
        Then the client ends with 5 credits and exactly one credit lot
        """
        await seed.account()
        await seed.package()

        async with session_factory() as session:
            intent = (await wire(session, gateway).create_intent.execute(purchase_command())).value
        gateway.succeed(intent.payment_intent_id)

        async def confirm():
            async with session_factory() as session:
                return await wire(session, gateway).confirm.execute(intent.payment_intent_id)

        first, second = await asyncio.gather(confirm(), confirm())

        assert first.is_ok() and second.is_ok()
        assert sorted([first.value.already_confirmed, second.value.already_confirmed]) == [False, True]
        assert first.value.credits_added == 5
        assert second.value.credits_added == 5

        account, lots = await load_account(session_factory)
        assert account.available_credits == 5
        assert account.total_credits_purchased == 5
        assert account.total_spent == 8180
        assert len(lots) == 1

    async def test_sequential_reconfirmation_changes_nothing(self, session_factory, seed, gateway):
        await seed.account()
        await seed.package()
        intent, confirmed = await buy_package(session_factory, gateway)

        async with session_factory() as session:
            again = await wire(session, gateway).confirm.execute(intent.payment_intent_id)

        assert confirmed.already_confirmed is False
        assert again.value.already_confirmed is True
        assert again.value.available_credits == 5

        account, _ = await load_account(session_factory)
        assert account.available_credits == 5
        assert account.total_spent == 8180


@pytest.mark.asyncio
class TestPurchaseLifecycle:
    async def test_intent_records_pending_transaction_with_fees(self, session_factory, seed, gateway):
        """
        Given a client and a 10000 package
        When a payment intent is created
        Then a pending transaction with platform 1500, processing 320, net 8180 is stored
        """
        await seed.account()
        await seed.package()

        async with session_factory() as session:
            app = wire(session, gateway)
            result = await app.create_intent.execute(purchase_command())
            stored = await app.transactions.get_by_transaction_id(result.value.transaction_id)

        assert result.is_ok()
        assert result.value.amount.platform_fee == 1500
        assert result.value.amount.processing_fee == 320
        assert result.value.amount.net == 8180
        assert stored.status == TransactionStatus.PENDING
        assert stored.payment_intent_id == result.value.payment_intent_id
        assert gateway.intent_keys == [f"intent-{stored.transaction_id}"]

        account, _ = await load_account(session_factory)
        assert account.gateway_customer_id == stored.customer_id

    async def test_unpaid_intent_cannot_be_confirmed(self, session_factory, seed, gateway):
        await seed.account()
        await seed.package()

        async with session_factory() as session:
            app = wire(session, gateway)
            intent = (await app.create_intent.execute(purchase_command())).value
            result = await app.confirm.execute(intent.payment_intent_id)

        assert result.is_err()
        assert result.error.code == ErrorCode.PAYMENT_NOT_SUCCEEDED

        account, lots = await load_account(session_factory)
        assert account.available_credits == 0
        assert lots == []

    async def test_canceled_payment_marks_transaction_failed(self, session_factory, seed, gateway):
        await seed.account()
        await seed.package()

        async with session_factory() as session:
            app = wire(session, gateway)
            intent = (await app.create_intent.execute(purchase_command())).value
            gateway.cancel(intent.payment_intent_id)
            result = await app.confirm.execute(intent.payment_intent_id)
            stored = await app.transactions.get_by_transaction_id(intent.transaction_id)

        assert result.error.code == ErrorCode.PAYMENT_NOT_SUCCEEDED
        assert stored.status == TransactionStatus.FAILED

    async def test_purchase_deduct_refund_and_repair(self, session_factory, seed, gateway):
        """
        Given a confirmed 5-credit purchase with one consultation deducted
        When the purchase is refunded
        Then the 4 unused credits leave with the lot, the consumed one has no
        other lot to come from, and the balance ends at 0
        And the repair job finds nothing left to do
        """
        await seed.account()
        await seed.package()
        intent, _ = await buy_package(session_factory, gateway)

        async with session_factory() as session:
            app = wire(session, gateway)
            deducted = await app.deduct.execute(
                DeductCreditCommandDTO(client_id="client_1", consultation_id="consult_1")
            )
            refunded = await app.refund.execute(
                RefundCommandDTO(
                    transaction_id=intent.transaction_id,
                    reason="client_requested",
                    requested_by="admin_1",
                )
            )
            repaired = await app.repair.execute()
            stored = await app.transactions.get_by_transaction_id(intent.transaction_id)

        assert deducted.value.available_credits == 4
        assert deducted.value.billing_transaction_id == intent.transaction_id

        assert refunded.is_ok()
        assert refunded.value.amount == 8180
        assert refunded.value.credits_clawed_back == 4
        assert gateway.refunds == [(intent.payment_intent_id, 8180, "client_requested")]
        assert gateway.refund_keys == [f"refund-{intent.transaction_id}"]

        assert stored.status == TransactionStatus.REFUNDED
        assert stored.refund_amount == 8180
        assert stored.refunded_by == "admin_1"

        assert repaired.value.transactions_checked == 0
        assert repaired.value.repaired == 0

        account, lots = await load_account(session_factory)
        assert account.available_credits == 0
        assert account.total_credits_used == 1
        assert lots[0].status == CreditLotStatus.REFUNDED
        assert lots[0].credits_remaining == 0

    async def test_refund_rejected_by_gateway_can_be_retried(self, session_factory, seed, gateway):
        """
        Given a gateway that declines the first refund
        When the refund is retried after the gateway recovers
        Then the first attempt leaves the purchase succeeded with its credits
        And the retry reuses the same idempotency key and completes the refund
        """
        await seed.account()
        await seed.package()
        intent, _ = await buy_package(session_factory, gateway)
        gateway.fail_refunds = True

        async with session_factory() as session:
            app = wire(session, gateway)
            result = await app.refund.execute(
                RefundCommandDTO(transaction_id=intent.transaction_id, reason="duplicate")
            )
            stored = await app.transactions.get_by_transaction_id(intent.transaction_id)

        assert result.error.code == ErrorCode.EXTERNAL_SERVICE_ERROR
        assert stored.status == TransactionStatus.SUCCEEDED
        assert stored.refund_status is None
        assert stored.refund_amount is None
        assert stored.refunded_at is None

        account, _ = await load_account(session_factory)
        assert account.available_credits == 5

        gateway.fail_refunds = False
        async with session_factory() as session:
            retried = await wire(session, gateway).refund.execute(
                RefundCommandDTO(transaction_id=intent.transaction_id, reason="duplicate")
            )

        assert retried.is_ok()
        assert gateway.refund_keys == [f"refund-{intent.transaction_id}"] * 2
        assert len(gateway.refunds) == 1

    async def test_concurrent_refunds_reach_the_gateway_once(self, session_factory, seed, gateway):
        """
        Given a succeeded 5-credit purchase
        When two refunds for it run concurrently
        Then exactly one is sent to the gateway and succeeds
        And the other is rejected as not refundable
        """
        await seed.account()
        await seed.package()
        intent, _ = await buy_package(session_factory, gateway)

        async def refund():
            async with session_factory() as session:
                return await wire(session, gateway).refund.execute(
                    RefundCommandDTO(
                        transaction_id=intent.transaction_id,
                        reason="client_requested",
                        requested_by="admin_1",
                    )
                )

        first, second = await asyncio.gather(refund(), refund())

        outcomes = sorted([first.is_ok(), second.is_ok()])
        assert outcomes == [False, True]
        rejected = first if first.is_err() else second
        assert rejected.error.code == ErrorCode.NOT_REFUNDABLE
        assert len(gateway.refunds) == 1

        account, lots = await load_account(session_factory)
        assert account.available_credits == 0
        assert lots[0].status == CreditLotStatus.REFUNDED

    async def test_repair_applies_a_missing_clawback_once(self, session_factory, seed, gateway):
        """
        Given a transaction recorded as refunded whose credits were never clawed back
        When the repair job runs twice
        Then the first run claws back 5 credits and the second finds nothing
        """
        await seed.account()
        await seed.package()
        intent, _ = await buy_package(session_factory, gateway)

        async with session_factory() as session:
            transactions = SqlAlchemyBillingTransactionRepository(session)
            transaction = await transactions.get_by_transaction_id(intent.transaction_id)
            transaction.status = TransactionStatus.REFUNDED
            transaction.refund_amount = transaction.net_amount
            transaction.refunded_at = datetime.utcnow()
            await transactions.update(transaction)
            await session.commit()

        async with session_factory() as session:
            first = await wire(session, gateway).repair.execute()
        async with session_factory() as session:
            second = await wire(session, gateway).repair.execute()

        assert first.value.repaired == 1
        assert first.value.repairs[0].credits_clawed_back == 5
        assert second.value.transactions_checked == 0

        account, lots = await load_account(session_factory)
        assert account.available_credits == 0
        assert lots[0].status == CreditLotStatus.REFUNDED


@pytest.mark.asyncio
class TestCreditExpiryAndDeduction:
    async def test_deduction_uses_oldest_lot_first(self, session_factory, seed, gateway):
        await seed.account()
        await seed.package()
        await seed.package(package_id="pkg_1", credits_total=1, expires_after_days=None)

        first, _ = await buy_package(session_factory, gateway)
        await buy_package(session_factory, gateway, package_id="pkg_1")

        async with session_factory() as session:
            result = await wire(session, gateway).deduct.execute(
                DeductCreditCommandDTO(client_id="client_1", consultation_id="consult_1")
            )

        assert result.value.billing_transaction_id == first.transaction_id
        assert result.value.available_credits == 5

    async def test_expired_lot_is_removed_from_balance(self, session_factory, seed, gateway):
        await seed.account()
        await seed.package()
        await buy_package(session_factory, gateway)

        async with session_factory() as session:
            accounts = SqlAlchemyCreditAccountRepository(session)
            account = await accounts.get_by_client_id("client_1")
            lot = (await accounts.get_lots(account.id))[0]
            lot.expiry_date = datetime.utcnow() - timedelta(days=1)
            await accounts.update_lot(lot)
            await session.commit()

        async with session_factory() as session:
            result = await wire(session, gateway).expire.execute()

        assert result.value.clients_checked == 1
        assert result.value.lots_expired == 1
        assert result.value.credits_expired == 5

        account, lots = await load_account(session_factory)
        assert account.available_credits == 0
        assert lots[0].status == CreditLotStatus.EXPIRED

        async with session_factory() as session:
            denied = await wire(session, gateway).deduct.execute(
                DeductCreditCommandDTO(client_id="client_1", consultation_id="consult_1")
            )
        assert denied.error.code == ErrorCode.INSUFFICIENT_CREDITS


@pytest.mark.asyncio
class TestPayouts:
    async def test_payout_batches_consultant_earnings_once(self, session_factory, seed, gateway):
        """
        Given two succeeded purchases earning consultant_1 6360 each
        When payouts are scheduled twice
        Then the first run schedules 12720 and the second has nothing to pay
        """
        await seed.account()
        await seed.package()
        await buy_package(session_factory, gateway)
        await buy_package(session_factory, gateway)

        payout_date = datetime(2024, 2, 1)
        async with session_factory() as session:
            first = await wire(session, gateway).schedule_payouts.execute(
                "tenant_1", "consultant_1", payout_date
            )
        async with session_factory() as session:
            second = await wire(session, gateway).schedule_payouts.execute(
                "tenant_1", "consultant_1", payout_date
            )

        assert first.value.scheduled is True
        assert first.value.count == 2
        assert first.value.total_amount == 12720

        assert second.value.scheduled is False
        assert second.value.count == 0
        assert second.value.reason == "below_minimum"

    async def test_payout_run_skips_consultants_below_minimum(self, session_factory, seed, gateway):
        await seed.account()
        await seed.package()
        await buy_package(session_factory, gateway)
        await buy_package(session_factory, gateway, amount=3000, consultant_id="consultant_2")

        async with session_factory() as session:
            app = wire(session, gateway)
            result = await app.run_payouts.execute(datetime(2024, 2, 1))

        assert result.value.consultants_checked == 2
        assert result.value.payouts_scheduled == 1
        assert result.value.below_minimum == 1
        assert result.value.total_amount == 6360


@pytest.mark.asyncio
class TestCreditConservation:
    async def test_refunding_an_expired_purchase_leaves_other_lots_alone(self, session_factory, seed, gateway):
        """
        Given two unused 5-credit purchases, the first of which has expired
        When the expired purchase is refunded
        Then nothing more leaves the balance and the second lot keeps its 5 credits
        """
        await seed.account()
        await seed.package()
        first, _ = await buy_package(session_factory, gateway)
        await buy_package(session_factory, gateway)
        await backdate_expiry(session_factory, first.transaction_id)

        async with session_factory() as session:
            await wire(session, gateway).expire.execute()
        async with session_factory() as session:
            refunded = await wire(session, gateway).refund.execute(
                RefundCommandDTO(transaction_id=first.transaction_id, reason="client_requested")
            )

        assert refunded.value.credits_clawed_back == 0
        account, lots = await assert_credits_conserved(session_factory)
        assert account.available_credits == 5
        assert [lot.status for lot in lots] == [CreditLotStatus.REFUNDED, CreditLotStatus.ACTIVE]

    async def test_consumed_credits_of_a_refunded_purchase_come_from_other_lots(
        self, session_factory, seed, gateway
    ):
        """
        Given two 5-credit purchases with one consultation deducted from the first
        When the first purchase is refunded
        Then its 4 unused credits and the consumed one (taken from the second lot) are removed
        """
        await seed.account()
        await seed.package()
        first, _ = await buy_package(session_factory, gateway)
        await buy_package(session_factory, gateway)

        async with session_factory() as session:
            await wire(session, gateway).deduct.execute(
                DeductCreditCommandDTO(client_id="client_1", consultation_id="consult_1")
            )
        async with session_factory() as session:
            refunded = await wire(session, gateway).refund.execute(
                RefundCommandDTO(transaction_id=first.transaction_id, reason="client_requested")
            )

        assert refunded.value.credits_clawed_back == 5
        account, lots = await assert_credits_conserved(session_factory)
        assert account.available_credits == 4
        assert lots[1].credits_remaining == 4
        assert lots[1].credits_used == 1

    async def test_balance_matches_active_lots_through_a_mixed_history(self, session_factory, seed, gateway):
        """
        Given three 5-credit purchases
        When credits are deducted, a lot expires and purchases are refunded
        Then after every step the balance equals the credits left in active lots
        """
        await seed.account()
        await seed.package()
        first, _ = await buy_package(session_factory, gateway)
        second, _ = await buy_package(session_factory, gateway)
        await buy_package(session_factory, gateway)
        await assert_credits_conserved(session_factory)

        async def deduct(consultation_id):
            async with session_factory() as session:
                return await wire(session, gateway).deduct.execute(
                    DeductCreditCommandDTO(client_id="client_1", consultation_id=consultation_id)
                )

        async def refund(transaction_id):
            async with session_factory() as session:
                return await wire(session, gateway).refund.execute(
                    RefundCommandDTO(transaction_id=transaction_id, reason="client_requested")
                )

        await deduct("consult_1")
        await deduct("consult_2")
        account, _ = await assert_credits_conserved(session_factory)
        assert account.available_credits == 13

        await backdate_expiry(session_factory, second.transaction_id)
        async with session_factory() as session:
            await wire(session, gateway).expire.execute()
        account, _ = await assert_credits_conserved(session_factory)
        assert account.available_credits == 8

        await refund(first.transaction_id)
        account, _ = await assert_credits_conserved(session_factory)
        assert account.available_credits == 3

        await refund(second.transaction_id)
        await deduct("consult_3")
        account, lots = await assert_credits_conserved(session_factory)
        assert account.available_credits == 2
        assert [lot.status for lot in lots] == [
            CreditLotStatus.REFUNDED,
            CreditLotStatus.REFUNDED,
            CreditLotStatus.ACTIVE,
        ]
