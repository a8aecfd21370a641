"""GetCreditBalance Use Case"""

import logging
from typing import Optional
from libs.result import Result, Return
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.credit_lot import CreditLotStatus
from .dtos import CreditBalanceResponseDTO, FreeTrialStatusDTO, LifetimeStatsDTO
from .mappers import to_free_trial_dto, to_lifetime_dto, to_lot_dto

logger = logging.getLogger(__name__)


class GetCreditBalance:
    """
    Use Case: Report a client's credit balance

    Never fails for a missing account: a client without a credit profile
    gets a zero balance with a warning instead of an error.
    """

    def __init__(self, account_repo: CreditAccountRepository, free_trial_duration_minutes: int = 15):
        self.account_repo = account_repo
        self.free_trial_duration_minutes = free_trial_duration_minutes

    async def execute(self, client_id: str, tenant_id: Optional[str] = None) -> Result[CreditBalanceResponseDTO]:
        account = await self.account_repo.get_by_client_id(client_id, tenant_id)
        if not account:
            logger.warning(f"No credit account for client {client_id}; returning zero balance")
            return Return.ok(
                CreditBalanceResponseDTO(
                    available_credits=0,
                    free_trial=FreeTrialStatusDTO(eligible=False, used=False),
                    active_credits=[],
                    lifetime=LifetimeStatsDTO(),
                    warning="Client profile not found",
                )
            )

        lots = await self.account_repo.get_lots(account.id)

        return Return.ok(
            CreditBalanceResponseDTO(
                available_credits=account.available_credits,
                free_trial=to_free_trial_dto(account, self.free_trial_duration_minutes),
                active_credits=[to_lot_dto(lot) for lot in lots if lot.status == CreditLotStatus.ACTIVE],
                lifetime=to_lifetime_dto(account),
            )
        )
