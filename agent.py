import json
import os

import structlog

from config import Settings
from models import CharacterSummary
from prompts import (
    CLASS_NARRATIVES,
    CLOSING_NARRATIVE,
    NARRATIVE_PROMPT,
    RANK_NARRATIVES,
    SYSTEM_PROMPT,
)

logger = structlog.get_logger(__name__)


def template_description(character: CharacterSummary) -> str:
    """Deterministic backstory built from the class and rank templates."""
    attrs = character.attributes
    opening = CLASS_NARRATIVES[character.character_class].format(
        nft_count=character.analysis.nft_count,
        defi_count=len(character.analysis.defi_protocols),
        greed=attrs.greed,
        social=attrs.social,
        adventure=attrs.adventure,
        aesthetic=attrs.aesthetic,
        chain_count=len(character.chains_used),
    )
    closing = CLOSING_NARRATIVE.format(
        rank_text=RANK_NARRATIVES[character.rank],
        active_years=character.active_years,
        total_transactions=character.total_transactions,
        unique_contracts=character.analysis.unique_contracts,
    )
    return f"{opening}\n\n{closing}"


class CharacterNarrator:
    """Writes a character's backstory, with an LLM when one is configured."""

    def __init__(self, settings: Settings):
        self.provider = settings.ai_provider.lower()
        self.client = None
        self.model = None

        if self.provider == "none":
            return
        elif self.provider == "anthropic":
            self._init_anthropic()
        elif self.provider == "gemini":
            self._init_gemini()
        elif self.provider == "openai":
            self._init_openai()
        else:
            raise ValueError(
                f"Unknown AI_PROVIDER '{self.provider}'. "
                "Set AI_PROVIDER to 'none', 'anthropic', 'openai', or 'gemini'."
            )

    # ── Provider Init ─────────────────────────────────────────────────────

    def _init_anthropic(self):
        import anthropic

        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError("ANTHROPIC_API_KEY is not set.")
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-6")
        logger.info("narrator_ready", provider="anthropic", model=self.model)

    def _init_gemini(self):
        import google.generativeai as genai

        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise EnvironmentError("GEMINI_API_KEY is not set.")
        genai.configure(api_key=api_key)
        self.model = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.client = genai.GenerativeModel(self.model)
        logger.info("narrator_ready", provider="gemini", model=self.model)

    def _init_openai(self):
        from openai import OpenAI

        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise EnvironmentError("OPENAI_API_KEY is not set.")
        self.client = OpenAI(api_key=api_key)
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o")
        logger.info("narrator_ready", provider="openai", model=self.model)

    # ── Describe ──────────────────────────────────────────────────────────

    def describe(self, character: CharacterSummary) -> str:
        if self.client is None:
            return template_description(character)

        sheet = character.model_dump(exclude={"transaction_activity", "description"})
        prompt = NARRATIVE_PROMPT.format(
            character_data=json.dumps(sheet, indent=2, default=str),
            character_class=character.character_class.value,
            rank=character.rank.value,
        )

        try:
            if self.provider == "anthropic":
                return self._call_anthropic(prompt)
            elif self.provider == "gemini":
                return self._call_gemini(prompt)
            return self._call_openai(prompt)
        except Exception as e:
            logger.warning("narration_failed", provider=self.provider, error=str(e))
            return template_description(character)

    def _call_anthropic(self, prompt: str) -> str:
        message = self.client.messages.create(
            model=self.model,
            max_tokens=1024,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return message.content[0].text

    def _call_gemini(self, prompt: str) -> str:
        response = self.client.generate_content(f"{SYSTEM_PROMPT}\n\n{prompt}")
        return response.text

    def _call_openai(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=1024,
        )
        return response.choices[0].message.content
