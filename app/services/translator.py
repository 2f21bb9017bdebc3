"""Best-effort translation of short text spans with a process-wide cache.

Translation must never break the caller: failures come back as an empty
string with status "failed" and are cached like successes.
"""

import logging

from app.models.schemas import TranslationOutcome
from app.services.ai_client import GenerativeAIClient
from app.services.prompt_builder import TRANSLATION_TEMPERATURE, build_translation_prompt
from app.services.resilient_invoker import with_retry

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX_CHARS = 50


def translation_cache_key(text: str) -> str:
    """Text up to 50 chars as-is, else the first 50 chars plus the full length.

    Callers pass the whitespace-trimmed span, so " abc " and "abc" share an
    entry. Distinct long strings sharing a 50-char prefix and length collide.
    """
    if len(text) <= CACHE_KEY_PREFIX_CHARS:
        return text
    return f"{text[:CACHE_KEY_PREFIX_CHARS]}{len(text)}"


class TranslationCache:
    """Append-only in-memory translation store.

    Entries are never evicted. Concurrent writes for a key carry the same
    value, so last write wins without locking.
    """

    def __init__(self, entries: dict[str, str] | None = None):
        self._entries: dict[str, str] = dict(entries or {})

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class Translator:
    """Translates text spans through the AI client, memoized by TranslationCache."""

    def __init__(
        self,
        ai_client: GenerativeAIClient,
        cache: TranslationCache,
        target_language: str = "Simplified Chinese",
        max_retries: int = 1,
        retry_delay_ms: int = 1000,
    ):
        self._ai_client = ai_client
        self._cache = cache
        self._target_language = target_language
        self._max_retries = max_retries
        self._retry_delay_ms = retry_delay_ms

    async def translate(self, text: str) -> TranslationOutcome:
        """Translate ``text``; never raises.

        Returns:
            TranslationOutcome with status "too_short" (nothing sent, nothing
            cached), "translated", or "failed" (empty text, cached).
        """
        clean = (text or "").strip()
        prompt = build_translation_prompt(clean, self._target_language)
        if prompt is None:
            return TranslationOutcome(status="too_short", text="")

        key = translation_cache_key(clean)
        cached = self._cache.get(key)
        if cached is not None:
            status = "translated" if cached else "failed"
            return TranslationOutcome(status=status, text=cached)

        try:
            reply = await with_retry(
                lambda: self._ai_client.generate(prompt, TRANSLATION_TEMPERATURE),
                max_retries=self._max_retries,
                delay=self._retry_delay_ms,
            )
        except Exception as e:
            logger.warning("Translation failed: %s", type(e).__name__)
            self._cache.set(key, "")
            return TranslationOutcome(status="failed", text="")

        translation = reply.strip()
        self._cache.set(key, translation)
        return TranslationOutcome(
            status="translated" if translation else "failed", text=translation
        )
