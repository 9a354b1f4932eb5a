"""
Generative Text Client: Anthropic Messages API behind one iterator interface.

``stream()`` yields text chunks and terminates when the response is complete;
``generate()`` is simply ``"".join(stream(...))``. Every failure surfaces as
ExternalServiceError so the session controller can apply its fallback policy.

Each phase has its own model, token budget, temperature and timeout tier;
see ``build_phase_configs``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterator, Protocol, Sequence

import anthropic
from loguru import logger

from edge.core.errors import ExternalServiceError
from edge.core.models import Message

if TYPE_CHECKING:
    from config import Settings


@dataclass(frozen=True)
class GenerationConfig:
    """Per-phase generation parameters."""

    phase: str
    model: str
    max_tokens: int
    temperature: float
    timeout_seconds: float


def build_phase_configs(settings: Settings) -> dict[str, GenerationConfig]:
    """Per-phase table; coach runs on the fast model."""
    primary = settings.primary_model
    interactive = settings.interactive_timeout_seconds
    content = settings.content_timeout_seconds

    return {
        "checkin": GenerationConfig("checkin", primary, 200, 0.7, interactive),
        "lesson": GenerationConfig("lesson", primary, 1200, 0.8, content),
        "retrieval": GenerationConfig("retrieval", primary, 200, 0.5, interactive),
        "roleplay": GenerationConfig("roleplay", primary, 400, 0.9, settings.roleplay_timeout_seconds),
        "coach": GenerationConfig("coach", settings.fast_model, 300, 0.7, interactive),
        "debrief": GenerationConfig("debrief", primary, 1500, 0.6, content),
        "mission": GenerationConfig("mission", primary, 400, 0.7, content),
    }


class TextGenerator(Protocol):
    """What the controller needs from a generative backend."""

    def stream(self, system: str, messages: Sequence[Message], config: GenerationConfig) -> Iterator[str]:
        ...

    def generate(self, system: str, messages: Sequence[Message], config: GenerationConfig) -> str:
        ...


class GenerativeTextClient:
    """
    Anthropic-backed text generation.

    Created once at startup and shared. Without an API key the client still
    constructs, but every call raises ExternalServiceError.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        backoff_seconds: float = 2.0,
        client: Any | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            api_key: Anthropic API key (None disables generation)
            backoff_seconds: Fixed wait before the single retry on an upstream 429
            client: Pre-built SDK client (tests pass a fake)
            sleep: Sleep function used for the backoff
        """
        self.api_key = api_key
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._client = client

        if self._client is None and self.api_key:
            # Retries are handled here so the backoff stays predictable.
            self._client = anthropic.Anthropic(api_key=self.api_key, max_retries=0)

        if self._client is None:
            logger.warning("No Anthropic API key - generative calls will use fallbacks")

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def stream(self, system: str, messages: Sequence[Message], config: GenerationConfig) -> Iterator[str]:
        """
        Stream a response as text chunks.

        An upstream rate limit before the first chunk is retried exactly once
        after ``backoff_seconds``. Failures after output has started are not
        retried, since the caller has already consumed part of the text.

        Raises:
            ExternalServiceError: not configured, timed out, rate-limited twice,
                or any other API failure
        """
        if self._client is None:
            raise ExternalServiceError("Generative service is not configured")

        payload = [m.to_dict() for m in messages]
        attempt = 0
        while True:
            attempt += 1
            started = False
            try:
                with self._client.messages.stream(
                    model=config.model,
                    max_tokens=config.max_tokens,
                    temperature=config.temperature,
                    system=system,
                    messages=payload,
                    timeout=config.timeout_seconds,
                ) as response:
                    for chunk in response.text_stream:
                        started = True
                        yield chunk
                return
            except anthropic.RateLimitError as e:
                if attempt == 1 and not started:
                    logger.warning(
                        f"[{config.phase}] rate-limited upstream; retrying in {self.backoff_seconds}s"
                    )
                    self._sleep(self.backoff_seconds)
                    continue
                raise ExternalServiceError(
                    f"Generative service rate-limited ({config.phase})", rate_limited=True
                ) from e
            except anthropic.APITimeoutError as e:
                logger.error(f"[{config.phase}] timed out after {config.timeout_seconds}s")
                raise ExternalServiceError(
                    f"Generative service timed out ({config.phase})", timed_out=True
                ) from e
            except anthropic.APIError as e:
                logger.error(f"[{config.phase}] generation failed: {e}")
                raise ExternalServiceError(f"Generative service failed ({config.phase}): {e}") from e

    def generate(self, system: str, messages: Sequence[Message], config: GenerationConfig) -> str:
        """Buffered variant of :meth:`stream`."""
        text = "".join(self.stream(system, messages, config))
        logger.debug(f"[{config.phase}] generated {len(text)} chars")
        return text
