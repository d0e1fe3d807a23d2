"""
Anthropic-backed narrative analysis for completed wheel entries.

Every failure (missing key, timeout, transport error, empty reply) is turned
into a fixed apology string here, so callers always receive displayable text.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from anthropic import AsyncAnthropic

from ..domain.models import CATEGORIES, Category, WheelEntry, find_category
from .config import NarrativeConfig, get_settings
from .exceptions import NarrativeError, log_error_details
from .logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = "شما یک مشاور روانشناسی و کوچ زندگی هوشمند هستید."

FIRST_ENTRY_NOTE = "این اولین ثبت کاربر است."


def format_scores(entry: WheelEntry, categories: Sequence[Category] = CATEGORIES) -> str:
    parts = []
    for cid, score in entry.scores.items():
        category = find_category(cid, categories)
        parts.append(f"{category.name if category else cid}: {score}")
    return ", ".join(parts)


def build_prompt(
    current: WheelEntry,
    previous: WheelEntry | None,
    categories: Sequence[Category] = CATEGORIES,
) -> str:
    if previous is not None:
        comparison = f"امتیازات هفته گذشته: {format_scores(previous, categories)}."
    else:
        comparison = FIRST_ENTRY_NOTE

    return (
        'اطلاعات زیر مربوط به "چرخ زندگی" یک کاربر است.\n\n'
        "امتیازات فعلی (از 1 تا 10):\n"
        f"{format_scores(current, categories)}\n\n"
        "تاریخچه:\n"
        f"{comparison}\n\n"
        "لطفاً یک تحلیل کوتاه، امیدوارکننده و کاربردی به زبان فارسی ارائه دهید.\n"
        "1. نقاط قوت را شناسایی کنید.\n"
        "2. بخشی که کمترین امتیاز را دارد شناسایی کرده و یک راهکار عملی کوچک پیشنهاد دهید.\n"
        "3. وضعیت کلی تعادل زندگی را بررسی کنید.\n\n"
        "پاسخ باید صمیمی و مستقیم خطاب به کاربر باشد. حداکثر 200 کلمه."
    )


class ClaudeNarrativeService:
    """Generates the coaching narrative shown next to the status line."""

    def __init__(
        self,
        config: NarrativeConfig | None = None,
        client: AsyncAnthropic | None = None,
        categories: Sequence[Category] = CATEGORIES,
    ):
        self.config = config or get_settings().narrative
        self.categories = tuple(categories)
        self.client = client
        if self.client is None and self.config.enabled:
            self.client = AsyncAnthropic(
                api_key=self.config.api_key, timeout=self.config.timeout_seconds
            )
        logger.info(
            "ClaudeNarrativeService initialised (model=%s, enabled=%s)",
            self.config.model,
            self.client is not None,
        )

    async def _request(self, prompt: str) -> str:
        if self.client is None:
            raise NarrativeError("Anthropic API key is not configured", reason="missing_key")
        response = await self.client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            getattr(block, "text", "") for block in response.content if block.type == "text"
        ).strip()
        if not text:
            raise NarrativeError("Empty reply from the model", reason="empty")
        return text

    async def generate_narrative(self, current: WheelEntry, previous: WheelEntry | None) -> str:
        prompt = build_prompt(current, previous, self.categories)
        try:
            return await asyncio.wait_for(self._request(prompt), timeout=self.config.timeout_seconds)
        except NarrativeError as e:
            if e.reason == "missing_key":
                logger.warning("API key missing for narrative service")
                return self.config.missing_key_message
            logger.warning("Narrative reply unusable for entry %s: %s", current.id, e.message)
            return self.config.empty_reply_message
        except asyncio.TimeoutError:
            logger.warning(
                "Narrative request timed out after %.1fs for entry %s",
                self.config.timeout_seconds,
                current.id,
            )
            return self.config.error_message
        except Exception as e:
            logger.error(
                "Narrative request failed",
                extra=log_error_details(e, {"entry_id": current.id}),
            )
            return self.config.error_message
