"""Fee calculation for payment intents

All amounts are integers in minor currency units; percentages are applied
with half-up rounding so that gross = platform_fee + processing_fee + net.
"""

from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel


class FeePolicy(BaseModel):
    """Fee configuration, e.g. 15% platform fee and a 2.9% + 30 gateway fee"""

    platform_fee_percentage: Decimal = Decimal("15")
    gateway_fee_percentage: Decimal = Decimal("2.9")
    gateway_fixed_fee: int = 30


class FeeBreakdown(BaseModel):
    gross: int
    platform_fee: int
    processing_fee: int
    net: int


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_fees(gross: int, policy: FeePolicy) -> FeeBreakdown:
    """
    Split a gross amount into platform fee, processing fee and net

    Raises:
        ValueError: If gross is not positive, or the fees exceed it
    """
    if gross <= 0:
        raise ValueError("Amount must be greater than 0")

    gross_dec = Decimal(gross)
    platform_fee = _round_half_up(gross_dec * Decimal(policy.platform_fee_percentage) / Decimal(100))
    processing_fee = _round_half_up(
        gross_dec * Decimal(policy.gateway_fee_percentage) / Decimal(100) + Decimal(policy.gateway_fixed_fee)
    )
    net = gross - platform_fee - processing_fee

    if net < 0:
        raise ValueError(
            f"Amount {gross} does not cover fees (platform={platform_fee}, processing={processing_fee})"
        )

    return FeeBreakdown(
        gross=gross,
        platform_fee=platform_fee,
        processing_fee=processing_fee,
        net=net,
    )
