"""Generative-AI client and the error taxonomy shared by the analysis pipeline."""

import logging

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Base class for errors surfaced by the AI pipeline.

    ``user_message`` is safe to show to the end user and tells them what to do.
    """

    user_message = "The AI service failed to complete the request."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


class QuotaExceededError(AIServiceError):
    """Provider rate limit or quota exhausted. Never retried."""

    user_message = "AI quota exceeded. Please wait a minute and retry later."


class PayloadTooLargeError(AIServiceError):
    """Request rejected as too large. Never retried."""

    user_message = (
        "The request payload is too large for the AI service. "
        "Reduce the number of papers (maxPapers) and try again."
    )


class MissingCredentialError(AIServiceError):
    """No API key configured on the server."""

    user_message = "Server API Key configuration missing."


class EmptyResponseError(AIServiceError):
    """The AI call succeeded but returned no content."""

    user_message = "AI returned empty response."


class MalformedResponseError(AIServiceError):
    """The AI reply did not parse as the declared JSON schema."""

    user_message = "AI returned a malformed response. Please retry the analysis."


class GenerativeAIClient:
    """Thin wrapper around OpenAI chat completions.

    Accepts an instruction string, a sampling temperature and an optional JSON
    schema. Returns the raw reply text; parsing is the caller's job.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 8000,
        timeout: float = 120.0,
        openai_client: AsyncOpenAI | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._client = openai_client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise MissingCredentialError()
            # with_retry is the only retry layer
            self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    async def generate(
        self,
        prompt: str,
        temperature: float,
        schema: dict | None = None,
        schema_name: str = "response",
    ) -> str:
        """Run one completion.

        Args:
            prompt: Full instruction text.
            temperature: Sampling temperature.
            schema: Optional JSON schema; when set the reply is constrained to it.
            schema_name: Name reported to the provider for the schema.

        Returns:
            The reply content ("" when the provider sent none).
        """
        client = self._get_client()
        kwargs: dict = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": self._max_tokens,
            "timeout": self._timeout,
        }
        if schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            }
        response = await client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
