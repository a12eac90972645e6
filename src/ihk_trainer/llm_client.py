"""LLM client wrappers used by the feedback gateway."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import openai
from openai import OpenAI

from ihk_trainer.config import Config
from ihk_trainer.errors import GatewayTimeoutError, MissingCredentialError, RateLimitedError, TransportError

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """Something that turns a prompt into generated text."""

    @abstractmethod
    def generate(self, prompt: str, **kwargs) -> str:
        pass


class GeminiClient(LLMClient):
    """Gemini through its OpenAI-compatible Chat Completions endpoint.

    SDK failures are translated into the trainer's error taxonomy so callers
    never see ``openai`` exceptions. Requests are not retried.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key or Config.GEMINI_API_KEY
        if not self.api_key:
            raise MissingCredentialError("GEMINI_API_KEY is not configured")
        self.model = model or Config.GEMINI_MODEL
        self.base_url = base_url or Config.GEMINI_BASE_URL
        self._client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout or Config.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )

    def generate(self, prompt: str, **kwargs) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except openai.RateLimitError as e:
            raise RateLimitedError("Gemini rate limit exceeded", e) from e
        except openai.APITimeoutError as e:
            raise GatewayTimeoutError("Gemini request timed out", e) from e
        except (openai.APIConnectionError, openai.APIStatusError) as e:
            raise TransportError("Gemini request failed", e) from e
        except openai.APIError as e:
            raise TransportError("Gemini returned an unusable response", e) from e
        if not response.choices:
            raise TransportError("Gemini returned no choices")
        content = response.choices[0].message.content or ""
        logger.debug("Gemini returned %d characters", len(content))
        return content


def get_default_llm_client() -> LLMClient | None:
    """Gemini client when a key is configured, otherwise None."""
    if not Config.check_credentials():
        return None
    return GeminiClient()
