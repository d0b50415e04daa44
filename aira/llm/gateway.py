import asyncio
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from aira.config import Settings
from aira.errors import TransientUpstreamError, UpstreamError
from aira.models.schemas import Message

Sleep = Callable[[float], Awaitable[None]]


class ModelGateway:
    """Chat-completion calls against the configured model, with retries.

    Cancelling the awaiting task aborts the in-flight request and any pending
    backoff; ``asyncio.CancelledError`` is never caught here.
    """

    def __init__(
        self,
        settings: Settings,
        client: AsyncOpenAI | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client or AsyncOpenAI(
            base_url=settings.llm_base_url,
            api_key=settings.openai_api_key,
        )
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature
        self.timeout = settings.llm_timeout
        self.max_attempts = settings.llm_max_attempts
        self._sleep = sleep

    def _build_messages(self, system_prompt: str, history: Sequence[Message]) -> list[dict]:
        messages = [{"role": "system", "content": system_prompt}]
        for msg in history:
            role = "assistant" if msg.role == "assistant" else "user"
            messages.append({"role": role, "content": msg.content})
        return messages

    async def generate(self, system_prompt: str, history: Sequence[Message]) -> str:
        """Single attempt. Raises TransientUpstreamError on any failure."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(system_prompt, history),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except OpenAIError as e:
            raise TransientUpstreamError(f"model API error: {e}") from e

        if not response.choices:
            raise TransientUpstreamError("no response from model")

        content = response.choices[0].message.content or ""
        logger.debug("LLM raw response: {}", content)
        return content.strip()

    async def generate_with_retry(
        self,
        system_prompt: str,
        history: Sequence[Message],
        max_attempts: int | None = None,
    ) -> str:
        attempts = max_attempts or self.max_attempts
        last_error: TransientUpstreamError | None = None

        for attempt in range(attempts):
            try:
                return await self.generate(system_prompt, history)
            except TransientUpstreamError as e:
                last_error = e
                logger.warning("LLM attempt {}/{} failed: {}", attempt + 1, attempts, e)

            # Exponential backoff: 1s, 2s, 4s
            if attempt < attempts - 1:
                await self._sleep(2**attempt)

        logger.error("LLM call failed after {} attempts", attempts)
        raise UpstreamError(f"failed after {attempts} attempts: {last_error}") from last_error
