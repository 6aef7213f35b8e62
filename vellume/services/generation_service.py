import asyncio
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, Union

import httpx
from tenacity import AsyncRetrying, RetryError, before_sleep_log, stop_after_attempt, wait_exponential

from vellume.core.config import settings

logger = logging.getLogger(__name__)

BASE_PROMPT_SUFFIX = (
    ", pixel art style, 8-bit graphics, retro gaming aesthetic, "
    "vibrant colors, nostalgic feel, clean pixel edges"
)

STYLE_PRESETS = {
    "default": "",
    "gameboy": ", Game Boy green monochrome palette, 4 shades of green",
    "nes": ", NES 8-bit style, limited color palette, scanlines",
    "commodore": ", Commodore 64 aesthetic, CRT monitor effect",
}

BackendOutput = Union[bytes, bytearray, memoryview, AsyncIterator[bytes], Iterable[bytes]]


class GenerationFailedError(Exception):
    """The image backend kept failing after every retry. Retryable by the user."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"AI generation failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class GenerationResult:
    image: bytes
    generation_time_ms: int


def build_prompt(entry_text: str, style: Optional[str] = None) -> str:
    """Compose the text-to-image prompt; unknown styles fall back to no modifier."""
    modifier = STYLE_PRESETS.get(style or "default", "")
    return f"{entry_text}{BASE_PROMPT_SUFFIX}{modifier}"


async def collect_image(output: BackendOutput) -> bytes:
    """Concatenate backend output, in order, into one buffer. Streams are read to completion."""
    if isinstance(output, (bytes, bytearray, memoryview)):
        return bytes(output)

    chunks = []
    if hasattr(output, "__aiter__"):
        async for chunk in output:
            if chunk:
                chunks.append(bytes(chunk))
    elif hasattr(output, "__iter__"):
        for chunk in output:
            if chunk:
                chunks.append(bytes(chunk))
    else:
        raise TypeError(f"Unsupported image backend output: {type(output).__name__}")
    return b"".join(chunks)


class WorkersAIBackend:
    """Cloudflare Workers AI text-to-image over the REST API, streamed with httpx."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str,
        timeout: float = 60.0,
        num_steps: int = 20,
        guidance: float = 7.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = f"https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/run/{model}"
        self.api_token = api_token
        self.timeout = timeout
        self.num_steps = num_steps
        self.guidance = guidance
        self.transport = transport

    async def generate(self, prompt: str) -> AsyncIterator[bytes]:
        return self._stream(prompt)

    async def _stream(self, prompt: str) -> AsyncIterator[bytes]:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=False, transport=self.transport) as client:
            async with client.stream(
                "POST",
                self.url,
                headers={"Authorization": f"Bearer {self.api_token}"},
                json={"prompt": prompt, "num_steps": self.num_steps, "guidance": self.guidance},
            ) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    yield chunk


class GenerationOrchestrator:
    """
    Runs the image backend with bounded retries and returns the image bytes.

    Up to max_retries retries follow the first attempt, waiting 2 ** retry
    seconds before each (2s, then 4s). No storage or usage recording happens
    here, so a failed generation never costs the user quota.
    """

    def __init__(
        self,
        backend,
        max_retries: int = 2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.max_retries = max_retries
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    async def _attempt(self, prompt: str) -> bytes:
        image = await collect_image(await self.backend.generate(prompt))
        if not image:
            raise ValueError("Image backend returned no data")
        return image

    async def generate(self, entry_text: str, style: Optional[str] = None) -> GenerationResult:
        prompt = build_prompt(entry_text, style)
        attempts = self.max_retries + 1
        self.logger.info(f"generate: Entry - style: {style}, attempts: {attempts}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=2),
            sleep=self.sleep,
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
        )

        started = time.monotonic()
        try:
            async for attempt in retrying:
                with attempt:
                    image = await self._attempt(prompt)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            self.logger.error(f"generate: Failure - {last_error}")
            raise GenerationFailedError(attempts, last_error) from last_error

        generation_time_ms = int((time.monotonic() - started) * 1000)
        self.logger.info(f"generate: Success - {len(image)} bytes in {generation_time_ms}ms")
        return GenerationResult(image=image, generation_time_ms=generation_time_ms)


def get_image_backend() -> WorkersAIBackend:
    """Dependency to get the text-to-image backend"""
    return WorkersAIBackend(
        account_id=settings.cloudflare_account_id,
        api_token=settings.cloudflare_api_token,
        model=settings.ai_model,
        timeout=settings.ai_timeout_seconds,
    )
