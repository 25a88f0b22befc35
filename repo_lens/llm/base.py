import logging
import random
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when all LLM retries are exhausted."""


class LLMClient(ABC):

    def __init__(self, max_retries: int = 3, retry_delay: float = 2.0):
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    # ── Public entry point ──

    def generate_response(self, prompt: str, system: str = "") -> str:
        """Generate a response with automatic retry and exponential backoff.

        Raises :class:`LLMError` after all retries are exhausted, including
        when every attempt returned an empty answer.
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                result = self._generate(prompt, system)
                if result and result.strip():
                    return result
                logger.warning("[LLM] Empty response on attempt %d/%d",
                               attempt, self.max_retries)
                last_error = LLMError("empty response")
            except LLMError:
                raise
            except Exception as e:
                last_error = e
                logger.warning("[LLM] Error on attempt %d/%d: %s",
                               attempt, self.max_retries, e)

            if attempt < self.max_retries:
                # Jittered exponential backoff
                wait = self.retry_delay * (2 ** (attempt - 1))
                if "429" in str(last_error):
                    wait *= 2
                    logger.info("[LLM] Rate limit detected (429). Backing off for %.1fs", wait)
                time.sleep(wait + wait * 0.1 * random.random())

        raise LLMError(
            f"LLM failed after {self.max_retries} retries: {last_error}")

    # ── Subclass hook ──

    @abstractmethod
    def _generate(self, prompt: str, system: str = "") -> str:
        """Single synchronous generation attempt."""
