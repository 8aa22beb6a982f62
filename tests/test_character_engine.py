"""
Unit tests for character generation.

Classification is approximate by construction: call-data is matched by
selector or substring, never ABI-decoded.
"""

import random

import pytest

from character_engine import (
    analyze_character_attributes,
    calculate_active_time,
    calculate_character_rank,
    determine_character_class,
    filter_mainnet_transactions,
    format_chain_name,
    generate_character,
    rank_for_score,
    rank_score,
    recent_activity,
)
from conftest import (
    DEFI_CONTRACTS,
    ENS_REGISTRAR,
    MAINNETS,
    NOW,
    PLAIN_CALL,
    SEAPORT,
    WALLET,
    generic_address,
)
from models import CharacterAttributes, CharacterClass, CharacterRank


ATTRIBUTES = ["wisdom", "adventure", "aesthetic", "social", "greed", "stability"]


class TestEmptyInput:
    """A wallet with no history is a rank-D Newcomer."""

    def test_empty_character(self):
        character = generate_character(WALLET, [], now=NOW)

        assert character.character_class == CharacterClass.NEWCOMER
        assert character.rank == CharacterRank.D
        assert character.total_transactions == 0
        assert character.attributes == CharacterAttributes()
        assert character.active_years == 0.0
        assert character.active_time.display_text == "0 Years 0 Days"
        assert character.chains_used == []
        assert character.transaction_activity == []
        assert character.analysis.contract_interactions == []

    def test_empty_attributes_are_all_zero(self):
        attrs = analyze_character_attributes([])
        for name in ATTRIBUTES:
            assert getattr(attrs, name) == 0

    def test_only_testnet_activity_counts_as_empty(self, make_tx):
        txs = [make_tx(chain="sepolia", data=PLAIN_CALL) for _ in range(20)]
        character = generate_character(WALLET, txs, now=NOW)

        assert character.total_transactions == 0
        assert character.character_class == CharacterClass.NEWCOMER
        assert character.rank == CharacterRank.D


class TestAttributes:
    """Attribute scoring thresholds and bounds."""

    def test_attributes_stay_in_bounds_for_extreme_wallet(self, make_tx):
        txs = []
        for chain in MAINNETS:
            for i, contract in enumerate(DEFI_CONTRACTS):
                txs.append(make_tx(chain=chain, to=contract, data=PLAIN_CALL, days_ago=i * 100))
        txs += [make_tx(to=SEAPORT, data=PLAIN_CALL) for _ in range(60)]
        txs += [make_tx(to=ENS_REGISTRAR, data=PLAIN_CALL)]
        txs += [make_tx(data="0xcastvote") for _ in range(15)]
        txs += [make_tx(data="0xbridgeto") for _ in range(10)]
        txs += [make_tx(data=PLAIN_CALL) for _ in range(150)]

        attrs = analyze_character_attributes(txs)

        for name in ATTRIBUTES:
            assert 0 <= getattr(attrs, name) <= 5
        assert attrs.wisdom == 5
        assert attrs.adventure == 5
        assert attrs.aesthetic == 5
        assert attrs.social == 4

    def test_wisdom_never_decreases_with_more_protocols(self, make_tx):
        base = [make_tx(data="0x", value="1") for _ in range(5)]
        previous = analyze_character_attributes(base).wisdom

        scores = []
        txs = list(base)
        for contract in DEFI_CONTRACTS:
            txs.append(make_tx(to=contract, data=PLAIN_CALL, value="1"))
            wisdom = analyze_character_attributes(txs).wisdom
            assert wisdom >= previous
            previous = wisdom
            scores.append(wisdom)

        # >3 protocols adds 2, >7 adds 2 more
        assert scores[2] == 0
        assert scores[3] == 2
        assert scores[7] == 4

    def test_wisdom_counts_each_protocol_once(self, make_tx):
        txs = [make_tx(to=DEFI_CONTRACTS[0], data=PLAIN_CALL) for _ in range(50)]
        assert analyze_character_attributes(txs).wisdom == 0

    def test_adventure_from_chain_count(self, make_tx):
        two_chains = [make_tx(chain=c, value="1") for c in MAINNETS[:2]]
        four_chains = [make_tx(chain=c, value="1") for c in MAINNETS[:4]]
        six_chains = [make_tx(chain=c, value="1") for c in MAINNETS[:6]]

        assert analyze_character_attributes(two_chains).adventure == 2
        assert analyze_character_attributes(four_chains).adventure == 4
        assert analyze_character_attributes(six_chains).adventure == 5

    def test_chain_names_are_compared_case_insensitively(self, make_tx):
        txs = [make_tx(chain="ethereum", value="1"), make_tx(chain="Ethereum", value="1")]
        assert analyze_character_attributes(txs).adventure == 0

    def test_bridge_keyword_is_case_sensitive(self, make_tx):
        lower = [make_tx(data="0xbridge", value="1") for _ in range(6)]
        upper = [make_tx(data="0xBRIDGE", value="1") for _ in range(6)]

        assert analyze_character_attributes(lower).adventure == 1
        assert analyze_character_attributes(upper).adventure == 0

    def test_ens_interaction_adds_aesthetic(self, make_tx):
        txs = [make_tx(to=ENS_REGISTRAR, data="0x", value="1")]
        assert analyze_character_attributes(txs).aesthetic == 2

    def test_greed_for_zero_value_farming(self, make_tx):
        # 60 zero-value calls in one day: >5/day and >60% zero value
        txs = [make_tx(data=PLAIN_CALL) for _ in range(60)]
        assert analyze_character_attributes(txs).greed == 4

    def test_greed_for_more_than_100_contracts(self, make_tx):
        # one valued call per day, so only the contract-count rule can fire
        txs = [make_tx(data=PLAIN_CALL, value="1", days_ago=i) for i in range(101)]
        assert analyze_character_attributes(txs).greed == 1
        assert analyze_character_attributes(txs[:100]).greed == 0

    def test_aesthetic_top_tier_above_50_nft_moves(self, make_tx):
        fifty = [make_tx(to=SEAPORT, data=PLAIN_CALL, value="1", days_ago=i) for i in range(50)]
        fifty_one = fifty + [make_tx(to=SEAPORT, data=PLAIN_CALL, value="1", days_ago=50)]

        assert analyze_character_attributes(fifty).aesthetic == 4
        assert analyze_character_attributes(fifty_one).aesthetic == 5

    def test_failed_zero_value_transactions_are_not_greedy(self, make_tx):
        txs = [make_tx(data=PLAIN_CALL, success=False, days_ago=i * 10) for i in range(10)]
        assert analyze_character_attributes(txs).greed == 0

    def test_stability_uses_span_in_days(self, make_tx):
        txs = [make_tx(value="1"), make_tx(value="1", days_ago=800)]
        attrs = analyze_character_attributes(txs)

        # >365 days +2, >730 days +2, under one tx/day +2, clamped
        assert attrs.stability == 5

    def test_stability_for_mainstream_protocol(self, make_tx):
        txs = [make_tx(to=c, data=PLAIN_CALL, value="1") for c in DEFI_CONTRACTS[:1] * 10]
        # ten tx in one day is not calm, but Uniswap is mainstream
        assert analyze_character_attributes(txs).stability == 1

    def test_single_transaction_earns_no_stability(self, make_tx):
        attrs = analyze_character_attributes([make_tx(value="1")])
        assert attrs.stability == 0


class TestClassification:
    """Ordered class rules, first match wins."""

    def test_nft_collector(self, make_tx):
        txs = []
        for i in range(570):
            txs.append(make_tx(chain=MAINNETS[i % 6], days_ago=i % 300))
        txs += [make_tx(to=SEAPORT, days_ago=i) for i in range(30)]

        character = generate_character(WALLET, txs, now=NOW)

        assert character.total_transactions == 600
        assert len(character.chains_used) == 6
        assert character.attributes.aesthetic >= 4
        assert character.analysis.nft_count == 30
        assert character.character_class == CharacterClass.NFT_COLLECTOR

    def test_identity_seeker(self, make_tx):
        txs = [make_tx(to=ENS_REGISTRAR, data="0x", value="10")]
        character = generate_character(WALLET, txs, now=NOW)

        assert character.attributes.aesthetic == 2
        assert character.character_class == CharacterClass.IDENTITY_SEEKER

    def test_defi_alchemist(self, make_tx):
        txs = [
            make_tx(to=c, data=PLAIN_CALL, value="1", days_ago=i * 30)
            for i, c in enumerate(DEFI_CONTRACTS[:8])
        ]
        character = generate_character(WALLET, txs, now=NOW)

        assert character.attributes.wisdom == 4
        assert character.character_class == CharacterClass.DEFI_ALCHEMIST

    def test_airdrop_hunter(self, make_tx):
        txs = [make_tx(data=PLAIN_CALL) for _ in range(60)]
        assert generate_character(WALLET, txs, now=NOW).character_class == (
            CharacterClass.AIRDROP_HUNTER
        )

    def test_protocol_diplomat(self, make_tx):
        txs = [make_tx(data="0xvote", value="1", days_ago=i * 5) for i in range(12)]
        character = generate_character(WALLET, txs, now=NOW)

        assert character.analysis.governance_transactions == 12
        assert character.character_class == CharacterClass.PROTOCOL_DIPLOMAT

    def test_chain_wanderer(self, make_tx):
        txs = [make_tx(chain=c, value="1", days_ago=i * 5) for i, c in enumerate(MAINNETS[:4])]
        assert generate_character(WALLET, txs, now=NOW).character_class == (
            CharacterClass.CHAIN_WANDERER
        )

    def test_interchain_nomad(self, make_tx):
        txs = [make_tx(chain=c, value="1", days_ago=i * 5) for i, c in enumerate(MAINNETS[:3])]
        assert generate_character(WALLET, txs, now=NOW).character_class == (
            CharacterClass.INTERCHAIN_NOMAD
        )

    def test_earlier_rule_takes_precedence(self, make_tx):
        """ENS and heavy governance: diplomat outranks identity seeker."""
        txs = [make_tx(to=ENS_REGISTRAR, data="0x", value="1")]
        txs += [make_tx(data="0xvote", value="1", days_ago=i) for i in range(12)]

        attrs = analyze_character_attributes(txs)
        assert determine_character_class(txs, attrs) == CharacterClass.PROTOCOL_DIPLOMAT


class TestRank:
    """Rank score and bucket mapping."""

    def test_buckets(self):
        assert rank_for_score(0) == CharacterRank.D
        assert rank_for_score(1) == CharacterRank.D
        assert rank_for_score(2) == CharacterRank.C
        assert rank_for_score(4) == CharacterRank.B
        assert rank_for_score(6) == CharacterRank.A
        assert rank_for_score(8) == CharacterRank.S

    def test_broad_long_lived_wallet(self, make_tx):
        """800 days, 120+ contracts, 6 chains, 15 NFT hits, 6 protocols.

        Those conditions add up to 6 of the 7 reachable points, which lands
        in bucket A; the S bucket needs 8.
        """
        txs = []
        for i in range(120):
            txs.append(make_tx(
                chain=MAINNETS[i % 6], to=generic_address(10_000 + i),
                data=PLAIN_CALL, value="1", days_ago=(i * 7) % 800,
            ))
        txs.append(make_tx(value="1", days_ago=800))
        txs += [make_tx(to=SEAPORT, value="1", days_ago=i) for i in range(15)]
        txs += [make_tx(to=c, data=PLAIN_CALL, value="1") for c in DEFI_CONTRACTS[:6]]

        assert rank_score(txs) == 6
        assert calculate_character_rank(txs) == CharacterRank.A

        txs += [make_tx(value="1", days_ago=i % 800) for i in range(400)]
        assert len(txs) > 500
        assert rank_score(txs) == 7
        assert calculate_character_rank(txs) == CharacterRank.A

    def test_crossing_a_threshold_never_lowers_rank(self, make_tx):
        base = [make_tx(chain=c, value="1") for c in MAINNETS[:2]]
        base += [make_tx(to=SEAPORT, value="1") for _ in range(11)]
        more_chains = base + [make_tx(chain=c, value="1") for c in MAINNETS[2:6]]

        before = calculate_character_rank(base)
        after = calculate_character_rank(more_chains)

        assert rank_score(more_chains) == rank_score(base) + 2
        assert after.ordinal >= before.ordinal

    def test_rank_ordering(self):
        ordered = [CharacterRank.D, CharacterRank.C, CharacterRank.B, CharacterRank.A, CharacterRank.S]
        assert [r.ordinal for r in ordered] == [0, 1, 2, 3, 4]


class TestMainnetFilter:
    """Testnet exclusion before scoring."""

    def test_drops_testnets_and_unknown_chains(self, make_tx):
        keep = [make_tx(chain="ethereum"), make_tx(chain="Base"), make_tx(chain="zora")]
        drop = [make_tx(chain="sepolia"), make_tx(chain="base_sepolia"), make_tx(chain="goerli")]

        result = filter_mainnet_transactions(keep + drop)
        assert [tx.hash for tx in result] == [tx.hash for tx in keep]

    def test_idempotent(self, make_tx):
        txs = [make_tx(chain=c) for c in MAINNETS + ["holesky", "sepolia"]]
        once = filter_mainnet_transactions(txs)
        twice = filter_mainnet_transactions(once)

        assert {tx.hash for tx in twice} == {tx.hash for tx in once}

    def test_display_names(self):
        assert format_chain_name("bnb") == "BSC"
        assert format_chain_name("avalanche_c") == "Avalanche"
        assert format_chain_name("zkevm") == "Polygon zkEVM"
        assert format_chain_name("ethereum") == "ethereum"


class TestSummary:
    """Derived statistics on the character summary."""

    def test_deterministic_regardless_of_order(self, make_tx):
        txs = []
        for i in range(80):
            txs.append(make_tx(
                chain=MAINNETS[i % 5],
                to=[SEAPORT, ENS_REGISTRAR, *DEFI_CONTRACTS, None][i % 13],
                data=["0x", PLAIN_CALL, "0xvote", "0xbridge"][i % 4],
                value=str(i % 3),
                days_ago=(i * 11) % 500,
            ))
        shuffled = list(txs)
        random.Random(7).shuffle(shuffled)

        first = generate_character(WALLET, txs, now=NOW)
        second = generate_character(WALLET, shuffled, now=NOW)

        assert first.model_dump() == second.model_dump()

    def test_active_time(self, make_tx):
        txs = [make_tx(days_ago=0), make_tx(days_ago=400)]
        active, years = calculate_active_time(txs)

        assert active.years == 1
        assert active.days == 35
        assert active.display_text == "1 Years 35 Days"
        assert years == pytest.approx(1.1)

    def test_recent_activity_window(self, make_tx):
        recent = make_tx(days_ago=10, chain="base")
        older = make_tx(days_ago=100, chain="ethereum")
        stale = make_tx(days_ago=400)

        points = recent_activity([recent, stale, older], NOW)

        assert [p.chain for p in points] == ["ethereum", "base"]
        assert points[0].block_time < points[1].block_time

    def test_chains_used_are_sorted_display_names(self, make_tx):
        txs = [make_tx(chain="polygon"), make_tx(chain="bnb"), make_tx(chain="base")]
        character = generate_character(WALLET, txs, now=NOW)

        assert character.chains_used == ["BSC", "base", "polygon"]

    def test_unique_contracts_counts_recipients(self, make_tx):
        txs = [make_tx(to=SEAPORT), make_tx(to=SEAPORT.upper().replace("0X", "0x")), make_tx(to=None)]
        character = generate_character(WALLET, txs, now=NOW)

        assert character.analysis.unique_contracts == 1

    def test_address_is_echoed(self, make_tx):
        mixed = "0xAbAbabABababababABABababababababababABab"
        character = generate_character(mixed, [make_tx()], now=NOW)
        assert character.address == mixed
