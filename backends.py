# backends.py

import logging
from typing import Dict, Optional

from openai import APIConnectionError, APIError, APIStatusError, OpenAI
from pydantic import BaseModel, ConfigDict
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import PipelineConfig
from errors import BackendError, ConfigurationError

log = logging.getLogger("backends")

OPENAI = "openai"
DEEPSEEK = "deepseek"


class CompletionParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str = ""
    temperature: float = 0.3
    max_tokens: int = 2000


class ModelBackend:
    """
    One LLM provider behind a uniform contract: prompt in, raw text out.

    Subclasses implement ``_request``; ``complete`` adds transport retries
    (connection errors and timeouts only) and maps SDK errors to BackendError.
    """

    name = "backend"

    def __init__(self, client: OpenAI, model: str, max_attempts: int = 3):
        self.client = client
        self.model = model
        self._request_with_retry = retry(
            stop=stop_after_attempt(max(1, max_attempts)),
            wait=wait_exponential(min=1, max=8),
            retry=retry_if_exception_type(APIConnectionError),
            reraise=True,
        )(self._request)

    def _request(self, prompt: str, params: CompletionParams) -> Optional[str]:
        raise NotImplementedError

    def complete(self, prompt: str, params: CompletionParams) -> str:
        try:
            text = self._request_with_retry(prompt, params)
        except APIStatusError as e:
            raise BackendError(
                f"{self.name} API error {e.status_code}: {e.message}",
                status_code=e.status_code,
                model=self.name,
            ) from e
        except APIError as e:
            raise BackendError(f"{self.name} request failed: {e}", model=self.name) from e
        if not isinstance(text, str) or not text.strip():
            raise BackendError(f"Invalid response from {self.name}: empty content", model=self.name)
        return text


class OpenAIChatBackend(ModelBackend):
    """Chat Completions; payload lives in choices[0].message.content."""

    name = OPENAI

    def _request(self, prompt: str, params: CompletionParams) -> Optional[str]:
        messages = []
        if params.system:
            messages.append({"role": "system", "content": params.system})
        messages.append({"role": "user", "content": prompt})
        r = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=params.temperature,
            max_tokens=params.max_tokens,
        )
        if not r.choices or r.choices[0].message is None:
            return None
        return r.choices[0].message.content


class DeepSeekCompletionBackend(ModelBackend):
    """
    DeepSeek (beta) Completions; payload lives in choices[0].text.
    The completion API has no roles, so the system text is prepended.
    """

    name = DEEPSEEK

    def _request(self, prompt: str, params: CompletionParams) -> Optional[str]:
        full_prompt = f"{params.system}\n\n{prompt}" if params.system else prompt
        r = self.client.completions.create(
            model=self.model,
            prompt=full_prompt,
            temperature=params.temperature,
            max_tokens=params.max_tokens,
        )
        if not r.choices:
            return None
        return r.choices[0].text


def build_backends(config: PipelineConfig) -> Dict[str, ModelBackend]:
    """
    OpenAI is mandatory; DeepSeek is added only when its key is configured.
    SDK-level retries are off: HTTP errors surface at once, transport errors
    go through the backend's own retry.
    """
    if not config.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set. Add it to your .env file.")

    backends: Dict[str, ModelBackend] = {
        OPENAI: OpenAIChatBackend(
            OpenAI(
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                timeout=config.request_timeout_seconds,
                max_retries=0,
            ),
            model=config.openai_model,
            max_attempts=config.backend_max_attempts,
        )
    }
    if config.deepseek_api_key:
        backends[DEEPSEEK] = DeepSeekCompletionBackend(
            OpenAI(
                api_key=config.deepseek_api_key,
                base_url=config.deepseek_base_url,
                timeout=config.request_timeout_seconds,
                max_retries=0,
            ),
            model=config.deepseek_model,
            max_attempts=config.backend_max_attempts,
        )
    log.info("[Backends] Configured: %s", ", ".join(sorted(backends)))
    return backends


def select_model(is_stem: bool, backends: Dict[str, ModelBackend]) -> str:
    """DeepSeek for STEM chunks when it is configured, OpenAI otherwise."""
    if is_stem and DEEPSEEK in backends:
        return DEEPSEEK
    return OPENAI
