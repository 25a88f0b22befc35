"""
OpenAI-compatible LLM client: works with OpenAI, Groq, Together.ai,
and any other provider that implements the OpenAI chat/completions API.
"""

import logging
from typing import Optional

import requests

from .base import LLMClient

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You answer questions about a software repository using only the "
    "code excerpts you are given."
)


class OpenAIClient(LLMClient):

    def __init__(self, base_url: str, model: str, api_key: str,
                 timeout: float = 60.0,
                 session: Optional[requests.Session] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _generate(self, prompt: str, system: str = "") -> str:
        est_tokens = int(len(prompt.split()) * 1.3)
        logger.debug("[OpenAI] Sending ~%d est. tokens", est_tokens)

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system or DEFAULT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
            "stream": False,
        }
        url = f"{self.base_url}/chat/completions"
        response = self._session.post(url, headers=self._headers(), json=payload,
                                      timeout=(10, self.timeout))
        response.raise_for_status()
        data = response.json()

        usage = data.get("usage", {})
        logger.debug("[OpenAI] Usage: prompt=%s completion=%s",
                     usage.get("prompt_tokens"), usage.get("completion_tokens"))
        return data["choices"][0]["message"]["content"]
