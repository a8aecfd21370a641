"""OpenCreditAccount Use Case

Creates a client's credit account, optionally granting the free trial.
"""

import logging
from datetime import datetime, timedelta
from libs.result import Result, Return, Error
from src.app.errors import ErrorCode
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.credit_account import ClientCreditAccount
from .dtos import OpenCreditAccountCommandDTO, CreditAccountResponseDTO
from .mappers import to_free_trial_dto

logger = logging.getLogger(__name__)


class OpenCreditAccount:
    """
    Use Case: Open a credit account for a client

    Business Rules:
    1. One account per client (ACCOUNT_EXISTS otherwise)
    2. Balances and lifetime counters start at zero
    3. When granted, the free trial expires free_trial_expiry_days after opening
    """

    def __init__(
        self,
        uow: UnitOfWork,
        account_repo: CreditAccountRepository,
        free_trial_expiry_days: int = 30,
        free_trial_duration_minutes: int = 15,
    ):
        self.uow = uow
        self.account_repo = account_repo
        self.free_trial_expiry_days = free_trial_expiry_days
        self.free_trial_duration_minutes = free_trial_duration_minutes

    async def execute(self, command: OpenCreditAccountCommandDTO) -> Result[CreditAccountResponseDTO]:
        existing = await self.account_repo.get_by_client_id(command.client_id)
        if existing:
            return Return.err(
                Error(
                    code=ErrorCode.ACCOUNT_EXISTS,
                    message=f"Credit account already exists for client {command.client_id}",
                )
            )

        now = datetime.utcnow()
        account = ClientCreditAccount(
            tenant_id=command.tenant_id,
            client_id=command.client_id,
            email=command.email,
            name=command.name,
            available_credits=0,
            free_trial_eligible=command.grant_free_trial,
            free_trial_used=False,
            free_trial_expires_at=(
                now + timedelta(days=self.free_trial_expiry_days) if command.grant_free_trial else None
            ),
            created_at=now,
            updated_at=now,
        )

        created = await self.account_repo.create(account)
        await self.uow.commit()

        logger.info(
            f"Credit account opened: tenant={command.tenant_id} client={command.client_id} "
            f"free_trial={command.grant_free_trial}"
        )

        return Return.ok(
            CreditAccountResponseDTO(
                tenant_id=created.tenant_id,
                client_id=created.client_id,
                available_credits=created.available_credits,
                free_trial=to_free_trial_dto(created, self.free_trial_duration_minutes, now),
                created_at=created.created_at,
            )
        )
