"""Merge freshly observed deposits with stored position baselines.

Pure: no I/O, no clock. The caller reads the prior positions, passes in
``now_ms`` and decides what to persist.

Baseline rules per deposit:
- prior position exists -> amount, start_apy, start_time carried forward;
  current_position and latest_apy refreshed from the observation.
- no prior position -> the observation becomes the baseline
  (amount = current amount, start_apy = reserve apy, start_time = now_ms).
"""

from dataclasses import dataclass, field
from decimal import Decimal

from lendbot.models import Deposit, ReserveObservation, WalletPosition

SKIP_NO_RESERVE = "no_matching_reserve"
SKIP_ZERO_AMOUNT = "zero_amount"


@dataclass(frozen=True)
class SkippedDeposit:
    """A deposit that produced no position, and why."""

    mint_address: str
    reason: str


@dataclass
class ReconciliationResult:
    positions: list[WalletPosition] = field(default_factory=list)
    skipped: list[SkippedDeposit] = field(default_factory=list)


def scale_amount(raw_amount: int, decimals: int) -> Decimal:
    """Convert a raw base-unit amount to token units."""
    return Decimal(raw_amount).scaleb(-decimals)


def total_by_mint(deposits: list[Deposit]) -> dict[str, int]:
    """Sum raw deposit amounts per mint, keeping first-seen order.

    A wallet may hold several obligations on one protocol, each reporting its
    own deposit of the same mint.
    """
    totals: dict[str, int] = {}
    for deposit in deposits:
        totals[deposit.mint_address] = totals.get(deposit.mint_address, 0) + deposit.amount
    return totals


def reconcile(
    wallet_address: str,
    protocol: str,
    deposits: list[Deposit],
    reserves: list[ReserveObservation],
    prior_positions: dict[str, WalletPosition],
    now_ms: int,
) -> ReconciliationResult:
    """Reconcile a wallet's deposits on one protocol.

    Args:
        wallet_address: Wallet the deposits belong to.
        protocol: Protocol id the deposits were read from.
        deposits: Current on-chain deposits; entries sharing a mint are summed.
        reserves: Latest reserve observations of the protocol.
        prior_positions: Stored positions of this wallet on this protocol,
            keyed by mint address.
        now_ms: Timestamp used as start_time for newly seen positions.

    Returns:
        ReconciliationResult with one position per reconciled mint and the
        deposits that were skipped. Skips are warnings, never errors.
    """
    by_mint = {r.mint_address: r for r in reserves}
    result = ReconciliationResult()

    for mint_address, raw_amount in total_by_mint(deposits).items():
        reserve = by_mint.get(mint_address)
        if reserve is None:
            result.skipped.append(SkippedDeposit(mint_address, SKIP_NO_RESERVE))
            continue

        # A zero deposit would otherwise become a zero cost basis
        if raw_amount <= 0:
            result.skipped.append(SkippedDeposit(mint_address, SKIP_ZERO_AMOUNT))
            continue

        current_amount = scale_amount(raw_amount, reserve.decimals)
        prior = prior_positions.get(mint_address)

        if prior is not None:
            amount, start_apy, start_time = prior.amount, prior.start_apy, prior.start_time
        else:
            amount, start_apy, start_time = current_amount, reserve.apy, now_ms

        result.positions.append(
            WalletPosition(
                wallet_address=wallet_address,
                protocol_name=protocol,
                coin_name=reserve.coin_name,
                mint_address=mint_address,
                amount=amount,
                start_apy=start_apy,
                start_time=start_time,
                current_position=current_amount,
                latest_apy=reserve.apy,
            )
        )

    return result
