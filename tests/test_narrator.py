"""
Tests for character narration: templates and LLM fallback.
"""

from types import SimpleNamespace

import pytest

from agent import CharacterNarrator, template_description
from conftest import WALLET
from models import (
    CharacterAnalysis,
    CharacterAttributes,
    CharacterClass,
    CharacterRank,
    CharacterSummary,
)


def summary(character_class: CharacterClass, rank: CharacterRank = CharacterRank.C) -> CharacterSummary:
    return CharacterSummary(
        address=WALLET,
        character_class=character_class,
        rank=rank,
        attributes=CharacterAttributes(aesthetic=4, adventure=4, greed=5, social=3),
        total_transactions=321,
        active_years=1.5,
        chains_used=["base", "ethereum", "polygon"],
        analysis=CharacterAnalysis(nft_count=25, defi_protocols=["Aave"], unique_contracts=17),
    )


class TestTemplates:
    """Template narratives exist for every class and rank."""

    @pytest.mark.parametrize("character_class", list(CharacterClass))
    def test_every_class(self, character_class):
        text = template_description(summary(character_class))

        assert text
        assert "321 transactions" in text
        assert "17 different contracts" in text
        assert "1.5 years" in text

    @pytest.mark.parametrize("rank", list(CharacterRank))
    def test_every_rank(self, rank):
        assert template_description(summary(CharacterClass.NEWCOMER, rank))

    def test_numbers_are_filled_in(self):
        assert "25 NFT moves" in template_description(summary(CharacterClass.NFT_COLLECTOR))
        assert "3 different blockchains" in template_description(summary(CharacterClass.CHAIN_WANDERER))


class TestNarrator:
    """Provider selection and fallback."""

    def test_no_provider_uses_template(self, settings):
        narrator = CharacterNarrator(settings)
        character = summary(CharacterClass.AIRDROP_HUNTER)

        assert narrator.client is None
        assert narrator.describe(character) == template_description(character)

    def test_unknown_provider(self, settings):
        with pytest.raises(ValueError):
            CharacterNarrator(settings.model_copy(update={"ai_provider": "llama"}))

    def test_missing_key(self, settings, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(EnvironmentError):
            CharacterNarrator(settings.model_copy(update={"ai_provider": "openai"}))

    def test_llm_text_is_used(self, settings):
        narrator = CharacterNarrator(settings)
        narrator.provider = "openai"
        narrator.model = "test-model"
        narrator.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(
            create=lambda **kwargs: SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="A tale."))]
            )
        )))

        assert narrator.describe(summary(CharacterClass.NEWCOMER)) == "A tale."

    def test_llm_failure_falls_back_to_template(self, settings):
        def boom(**kwargs):
            raise RuntimeError("rate limited")

        narrator = CharacterNarrator(settings)
        narrator.provider = "anthropic"
        narrator.model = "test-model"
        narrator.client = SimpleNamespace(messages=SimpleNamespace(create=boom))
        character = summary(CharacterClass.PROTOCOL_DIPLOMAT)

        assert narrator.describe(character) == template_description(character)
