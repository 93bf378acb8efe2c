"""
Generative AI capability used for categorisation hints and document
extraction.

Calls are best effort: provider failures are logged and turned into neutral
fallback values so callers never have to handle them.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional
import json
import logging
import os

import anthropic

from ..config import AIConfig
from ..utils.exceptions import AIProviderError

logger = logging.getLogger(__name__)

UNIDENTIFIED_CATEGORY = "OTHER > UNIDENTIFIED"

CATEGORY_PROMPT = """You are a financial assistant for a martial arts academy.
Categorize this transaction into a 'CATEGORY > SUBCATEGORY' format.

- REVENUE > MEMBERSHIPS: regular dues, member payments, payment processor payouts.
- REVENUE > DROP-INS: guest fees, seminars, cash.
- REVENUE > MERCHANDISE: gi sales, apparel, equipment.
- STAFF > WAGES: coaches, instructors, cleaning staff.
- STAFF > BENEFITS: insurance, training courses, staff meals.
- FACILITY > RENT: commercial rent, property fees.
- FACILITY > UTILITIES: gas, electric, water, internet.
- FACILITY > MAINTENANCE: repairs, janitorial supplies.
- OPERATIONS > SOFTWARE: subscriptions, hosting, processor fees.
- OPERATIONS > MARKETING: ads, flyers.
- OPERATIONS > PROFESSIONAL: accountants, legal fees, consultants.
- OPERATIONS > BANK FEES: bank fees, interest, currency exchange.
- OPERATIONS > HARDWARE: computers, cameras, phones.
- MEALS > BUSINESS: business meals.
- TRAVEL > BUSINESS: train tickets, fuel.
- DEBT > REPAYMENT: loan repayments, interest payments.
- OTHER > UNIDENTIFIED: if absolutely no other category fits.

Transaction: "{description}" | £{amount} | Type: {type}
Respond ONLY with 'CATEGORY > SUBCATEGORY' (all caps)."""

SUMMARY_PROMPT = """Summarize the following text in a few sentences for a small business owner.

{text}"""

EXTRACT_PROMPT = """{instructions}

Respond with ONLY a JSON object (no markdown, no explanations).

DOCUMENT:
{text}"""


def parse_json_response(text: Optional[str]) -> Optional[Any]:
    """
    Parse JSON returned by a model.

    A surrounding markdown code fence (```json ... ```) is removed first.

    Returns:
        The decoded value, or None if the text is not valid JSON
    """
    if not text:
        return None

    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Model response is not valid JSON: {e}")
        return None


def normalize_category(text: str) -> str:
    """Upper-case a model category reply, forcing the PARENT > SUB shape."""
    category = text.strip().upper()
    if not category:
        return UNIDENTIFIED_CATEGORY
    if " > " in category:
        return category
    return f"{category} > GENERAL"


class AIProvider(ABC):
    """Abstract generative AI capability."""

    @abstractmethod
    def summarize(self, text: str) -> str:
        """Short plain-language summary of ``text``; empty string on failure."""
        pass

    @abstractmethod
    def extract_structured(self, text: str, instructions: str) -> Optional[dict]:
        """
        Extract structured fields from a document.

        Args:
            text: Document content
            instructions: What to extract and the expected JSON keys

        Returns:
            Parsed JSON object, or None if nothing usable came back
        """
        pass

    @abstractmethod
    def categorize(self, description: str, amount: Decimal, transaction_type: str) -> str:
        """Suggest a 'CATEGORY > SUBCATEGORY' label for a bank transaction."""
        pass


class NullProvider(AIProvider):
    """Provider used when AI is disabled or no API key is configured."""

    def summarize(self, text: str) -> str:
        return ""

    def extract_structured(self, text: str, instructions: str) -> Optional[dict]:
        return None

    def categorize(self, description: str, amount: Decimal, transaction_type: str) -> str:
        return UNIDENTIFIED_CATEGORY


class AnthropicProvider(AIProvider):
    """AI provider backed by the Anthropic Messages API."""

    def __init__(self, config: AIConfig, api_key: Optional[str] = None, client: Any = None):
        """
        Args:
            config: Model name and generation settings
            api_key: Anthropic API key (read from ``config.api_key_env`` if omitted)
            client: Pre-built client, mainly for tests
        """
        self.config = config
        self.client = client or anthropic.Anthropic(
            api_key=api_key or os.environ.get(config.api_key_env)
        )

    def _complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        try:
            message = self.client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise AIProviderError(str(e)) from e

        if not message.content:
            raise AIProviderError("Empty response from model")
        return message.content[0].text.strip()

    def summarize(self, text: str) -> str:
        try:
            return self._complete(SUMMARY_PROMPT.format(text=text))
        except AIProviderError as e:
            logger.warning(f"AI summary failed: {e}")
            return ""

    def extract_structured(self, text: str, instructions: str) -> Optional[dict]:
        try:
            reply = self._complete(EXTRACT_PROMPT.format(instructions=instructions, text=text))
        except AIProviderError as e:
            logger.warning(f"AI extraction failed: {e}")
            return None

        result = parse_json_response(reply)
        if not isinstance(result, dict):
            return None
        return result

    def categorize(self, description: str, amount: Decimal, transaction_type: str) -> str:
        prompt = CATEGORY_PROMPT.format(
            description=description, amount=amount, type=transaction_type
        )
        try:
            reply = self._complete(prompt, max_tokens=50)
        except AIProviderError as e:
            logger.warning(f"AI categorization failed: {e}")
            return UNIDENTIFIED_CATEGORY
        return normalize_category(reply)


def create_provider(config: AIConfig) -> AIProvider:
    """
    Build the provider described by the configuration.

    Falls back to NullProvider when AI is disabled or the API key
    environment variable is unset.
    """
    if not config.enabled:
        return NullProvider()

    api_key = os.environ.get(config.api_key_env)
    if not api_key:
        logger.warning(f"{config.api_key_env} not set, AI features disabled")
        return NullProvider()

    return AnthropicProvider(config, api_key=api_key)
