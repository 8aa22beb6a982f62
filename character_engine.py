"""Character generation: turn a wallet's transactions into an RPG character.

The whole module is a pure function of its input. Callers hand in a
deduplicated batch of transactions; nothing here fetches, stores or
mutates shared state, and identical batches always give identical
characters regardless of input order.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence

import structlog

from detectors import (
    analyze_contract_interactions,
    contracts_interacted,
    count_bridge_transactions,
    count_governance_transactions,
    count_nft_transactions,
    find_defi_protocols,
    has_ens_interaction,
    unique_recipients,
)
from known_contracts import CHAIN_DISPLAY_NAMES, MAINNET_CHAINS, MAINSTREAM_PROTOCOLS
from models import (
    ActiveTime,
    ActivityPoint,
    CharacterAnalysis,
    CharacterAttributes,
    CharacterClass,
    CharacterRank,
    CharacterSummary,
    Transaction,
)
from utils import parse_wei

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
ATTRIBUTE_MIN = 0
ATTRIBUTE_MAX = 5
ACTIVITY_WINDOW_DAYS = 365


# ── Attribute Thresholds ──────────────────────────────────────────────────────

WISDOM_PROTOCOLS_TIER_1 = 3
WISDOM_PROTOCOLS_TIER_2 = 7
WISDOM_CONTRACTS = 50

ADVENTURE_CHAINS_TIER_1 = 1
ADVENTURE_CHAINS_TIER_2 = 3
ADVENTURE_CHAINS_TIER_3 = 5
ADVENTURE_BRIDGE_TXS = 5

AESTHETIC_NFT_TIER_1 = 5
AESTHETIC_NFT_TIER_2 = 20
AESTHETIC_NFT_TIER_3 = 50

SOCIAL_GOVERNANCE_TIER_1 = 0
SOCIAL_GOVERNANCE_TIER_2 = 10

GREED_DAILY_FREQUENCY = 5
GREED_ZERO_VALUE_SHARE = 0.6
GREED_CONTRACTS = 100

STABILITY_SPAN_DAYS_TIER_1 = 365
STABILITY_SPAN_DAYS_TIER_2 = 730
STABILITY_DAILY_FREQUENCY = 1


# ── Class Thresholds ──────────────────────────────────────────────────────────

CLASS_NFT_AESTHETIC = 4
CLASS_NFT_COUNT = 20
CLASS_DEFI_WISDOM = 4
CLASS_DEFI_PROTOCOLS = 5
CLASS_AIRDROP_GREED = 4
CLASS_DIPLOMAT_SOCIAL = 3
CLASS_WANDERER_ADVENTURE = 4
CLASS_WANDERER_CHAINS = 3
CLASS_IDENTITY_AESTHETIC = 2
CLASS_NOMAD_CHAINS = 2
CLASS_NOMAD_ADVENTURE = 2


# ── Rank Thresholds ───────────────────────────────────────────────────────────

RANK_TRANSACTIONS = 500
RANK_SPAN_DAYS = 730
RANK_CHAINS = 5
RANK_CONTRACTS = 100
RANK_NFT_COUNT = 10
RANK_DEFI_PROTOCOLS = 5

RANK_BUCKETS: tuple[tuple[int, CharacterRank], ...] = (
    (8, CharacterRank.S),
    (6, CharacterRank.A),
    (4, CharacterRank.B),
    (2, CharacterRank.C),
)


# ── Mainnet Filter ────────────────────────────────────────────────────────────


def filter_mainnet_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Drop testnet and unknown-chain transactions."""
    return [tx for tx in transactions if tx.chain.lower() in MAINNET_CHAINS]


def format_chain_name(chain: str) -> str:
    return CHAIN_DISPLAY_NAMES.get(chain.lower(), chain)


# ── Shared Features ───────────────────────────────────────────────────────────


def distinct_chains(transactions: Iterable[Transaction]) -> set[str]:
    return {tx.chain.lower() for tx in transactions}


def transaction_span_days(transactions: Sequence[Transaction]) -> float:
    """Days between the earliest and latest transaction (0 when empty)."""
    if not transactions:
        return 0.0
    times = [tx.block_time for tx in transactions]
    return (max(times) - min(times)).total_seconds() / SECONDS_PER_DAY


def daily_transaction_frequency(transactions: Sequence[Transaction]) -> float:
    if not transactions:
        return 0.0
    days = max(transaction_span_days(transactions), 1.0)
    return len(transactions) / days


def _clamp(value: int) -> int:
    return max(ATTRIBUTE_MIN, min(value, ATTRIBUTE_MAX))


# ── Attributes ────────────────────────────────────────────────────────────────


def analyze_character_attributes(transactions: Sequence[Transaction]) -> CharacterAttributes:
    """Score the six attributes from independent threshold rules.

    Each attribute only ever gains points; the total is clamped to
    [0, 5] at the end.
    """
    wisdom = adventure = aesthetic = social = greed = stability = 0

    chains = distinct_chains(transactions)
    contracts = contracts_interacted(transactions)
    defi_protocols = find_defi_protocols(transactions)
    daily = daily_transaction_frequency(transactions)
    span_days = transaction_span_days(transactions)

    # Wisdom: DeFi breadth
    if len(defi_protocols) > WISDOM_PROTOCOLS_TIER_1:
        wisdom += 2
    if len(defi_protocols) > WISDOM_PROTOCOLS_TIER_2:
        wisdom += 2
    if len(contracts) > WISDOM_CONTRACTS:
        wisdom += 1

    # Adventure: multi-chain exploration and bridging
    if len(chains) > ADVENTURE_CHAINS_TIER_1:
        adventure += 2
    if len(chains) > ADVENTURE_CHAINS_TIER_2:
        adventure += 2
    if len(chains) > ADVENTURE_CHAINS_TIER_3:
        adventure += 1
    if count_bridge_transactions(transactions) > ADVENTURE_BRIDGE_TXS:
        adventure += 1

    # Aesthetic: NFTs and ENS names
    nft_count = count_nft_transactions(transactions)
    if nft_count > AESTHETIC_NFT_TIER_1:
        aesthetic += 2
    if nft_count > AESTHETIC_NFT_TIER_2:
        aesthetic += 2
    if nft_count > AESTHETIC_NFT_TIER_3:
        aesthetic += 1
    if has_ens_interaction(transactions):
        aesthetic += 2

    # Social: governance keywords in call-data
    governance = count_governance_transactions(transactions)
    if governance > SOCIAL_GOVERNANCE_TIER_1:
        social += 2
    if governance > SOCIAL_GOVERNANCE_TIER_2:
        social += 2

    # Greed: farming patterns
    if daily > GREED_DAILY_FREQUENCY:
        greed += 2
    zero_value = sum(1 for tx in transactions if parse_wei(tx.value) == 0 and tx.success)
    if zero_value > len(transactions) * GREED_ZERO_VALUE_SHARE:
        greed += 2
    if len(contracts) > GREED_CONTRACTS:
        greed += 1

    # Stability: longevity, calm pace, mainstream protocols
    if span_days > STABILITY_SPAN_DAYS_TIER_1:
        stability += 2
    if span_days > STABILITY_SPAN_DAYS_TIER_2:
        stability += 2
    if transactions and daily < STABILITY_DAILY_FREQUENCY:
        stability += 2
    if any(m in p.lower() for p in defi_protocols for m in MAINSTREAM_PROTOCOLS):
        stability += 1

    return CharacterAttributes(
        wisdom=_clamp(wisdom),
        adventure=_clamp(adventure),
        aesthetic=_clamp(aesthetic),
        social=_clamp(social),
        greed=_clamp(greed),
        stability=_clamp(stability),
    )


# ── Class ─────────────────────────────────────────────────────────────────────


def determine_character_class(
    transactions: Sequence[Transaction], attributes: CharacterAttributes
) -> CharacterClass:
    """First matching rule wins; the order below is the precedence."""
    nft_count = count_nft_transactions(transactions)
    defi_count = len(find_defi_protocols(transactions))
    chain_count = len(distinct_chains(transactions))

    if attributes.aesthetic >= CLASS_NFT_AESTHETIC and nft_count > CLASS_NFT_COUNT:
        return CharacterClass.NFT_COLLECTOR
    if attributes.wisdom >= CLASS_DEFI_WISDOM and defi_count > CLASS_DEFI_PROTOCOLS:
        return CharacterClass.DEFI_ALCHEMIST
    if attributes.greed >= CLASS_AIRDROP_GREED:
        return CharacterClass.AIRDROP_HUNTER
    if attributes.social >= CLASS_DIPLOMAT_SOCIAL:
        return CharacterClass.PROTOCOL_DIPLOMAT
    if attributes.adventure >= CLASS_WANDERER_ADVENTURE and chain_count > CLASS_WANDERER_CHAINS:
        return CharacterClass.CHAIN_WANDERER
    if has_ens_interaction(transactions) and attributes.aesthetic >= CLASS_IDENTITY_AESTHETIC:
        return CharacterClass.IDENTITY_SEEKER
    if chain_count > CLASS_NOMAD_CHAINS and attributes.adventure >= CLASS_NOMAD_ADVENTURE:
        return CharacterClass.INTERCHAIN_NOMAD
    return CharacterClass.NEWCOMER


# ── Rank ──────────────────────────────────────────────────────────────────────


def rank_score(transactions: Sequence[Transaction]) -> int:
    score = 0
    if len(transactions) > RANK_TRANSACTIONS:
        score += 1
    if transaction_span_days(transactions) > RANK_SPAN_DAYS:
        score += 1
    if len(distinct_chains(transactions)) > RANK_CHAINS:
        score += 2
    if len(unique_recipients(transactions)) > RANK_CONTRACTS:
        score += 1
    if count_nft_transactions(transactions) > RANK_NFT_COUNT:
        score += 1
    if len(find_defi_protocols(transactions)) > RANK_DEFI_PROTOCOLS:
        score += 1
    return score


def rank_for_score(score: int) -> CharacterRank:
    for floor, rank in RANK_BUCKETS:
        if score >= floor:
            return rank
    return CharacterRank.D


def calculate_character_rank(transactions: Sequence[Transaction]) -> CharacterRank:
    return rank_for_score(rank_score(transactions))


# ── Summary ───────────────────────────────────────────────────────────────────


def calculate_active_time(transactions: Sequence[Transaction]) -> tuple[ActiveTime, float]:
    """Whole years + remaining days, and fractional years to one decimal."""
    total_days = int(transaction_span_days(transactions))
    years, days = divmod(total_days, 365)
    active = ActiveTime(years=years, days=days, display_text=f"{years} Years {days} Days")
    return active, round(total_days / 365, 1)


def recent_activity(
    transactions: Iterable[Transaction], now: datetime
) -> list[ActivityPoint]:
    cutoff = now - timedelta(days=ACTIVITY_WINDOW_DAYS)
    points = [
        ActivityPoint(block_time=tx.block_time, chain=tx.chain)
        for tx in transactions
        if tx.block_time >= cutoff
    ]
    points.sort(key=lambda p: (p.block_time, p.chain))
    return points


def generate_character(
    address: str,
    transactions: Sequence[Transaction],
    now: Optional[datetime] = None,
) -> CharacterSummary:
    """Build the full character for one wallet.

    Args:
        address: Wallet the transactions belong to (echoed back as-is).
        transactions: Deduplicated transactions on any chain; testnet
            activity is filtered out before scoring.
        now: Reference time for the trailing activity window. Defaults to
            the current UTC time.

    Returns:
        CharacterSummary with attributes, class, rank and statistics. An
        empty batch yields a rank-D Newcomer with all-zero attributes.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    mainnet = filter_mainnet_transactions(transactions)

    attributes = analyze_character_attributes(mainnet)
    character_class = determine_character_class(mainnet, attributes)
    rank = calculate_character_rank(mainnet)

    active_time, active_years = calculate_active_time(mainnet)
    nft_count = count_nft_transactions(mainnet)
    defi_protocols = sorted(find_defi_protocols(mainnet))
    chains_used = sorted(format_chain_name(chain) for chain in distinct_chains(mainnet))

    logger.debug(
        "character_generated",
        address=address,
        received=len(transactions),
        mainnet=len(mainnet),
        excluded=len(transactions) - len(mainnet),
        character_class=character_class.value,
        rank=rank.value,
        nft_count=nft_count,
        defi_protocols=defi_protocols,
    )

    return CharacterSummary(
        address=address,
        character_class=character_class,
        rank=rank,
        attributes=attributes,
        total_transactions=len(mainnet),
        active_years=active_years,
        active_time=active_time,
        chains_used=chains_used,
        transaction_activity=recent_activity(mainnet, now),
        analysis=CharacterAnalysis(
            nft_count=nft_count,
            defi_protocols=defi_protocols,
            governance_transactions=count_governance_transactions(mainnet),
            bridge_transactions=count_bridge_transactions(mainnet),
            unique_contracts=len(unique_recipients(mainnet)),
            contract_interactions=analyze_contract_interactions(mainnet),
        ),
    )
