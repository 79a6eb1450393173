from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from openai import AsyncOpenAI

from backend.app.services.retry import (
    FailureInfo,
    InvocationError,
    InvocationPolicy,
    NonRetryableError,
    invoke,
    is_auth_or_invalid_request,
)
from backend.app.settings import Settings

if TYPE_CHECKING:
    from backend.app.observability import MetricsRegistry

logger = logging.getLogger("prospect_ai")


class CompletionConfigError(Exception):
    pass


class CompletionResponseError(Exception):
    pass


@dataclass(frozen=True)
class AIConfig:
    model: str = "gpt-4"
    temperature: float = 0.7
    max_tokens: int = 1000
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    request_timeout_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIConfig":
        return cls(
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            max_retries=settings.ai_max_retries,
            retry_delay_seconds=settings.ai_retry_delay_seconds,
            request_timeout_seconds=settings.ai_request_timeout_seconds,
        )

    def invocation_policy(self) -> InvocationPolicy:
        return InvocationPolicy(
            max_attempts=self.max_retries,
            base_delay=self.retry_delay_seconds,
            non_retryable=is_auth_or_invalid_request,
        )


def is_completion_configured(settings: Settings) -> bool:
    return bool(settings.openai_api_key)


class CompletionClient:
    def __init__(
        self,
        client: Any,
        config: AIConfig,
        *,
        metrics: Optional["MetricsRegistry"] = None,
    ) -> None:
        self._client = client
        self.config = config
        self.policy = config.invocation_policy()
        self._metrics = metrics

    async def complete(self, prompt: str, *, system_prompt: Optional[str] = None) -> str:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        async def create_completion() -> Any:
            return await self._client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )

        try:
            response = await invoke(create_completion, self.policy, on_retry=self._on_retry)
        except InvocationError as exc:
            self._record("aborted" if isinstance(exc, NonRetryableError) else "exhausted")
            raise
        self._record("succeeded")
        return _message_content(response)

    def _on_retry(self, attempt: int, failure: FailureInfo, delay: float) -> None:
        if self._metrics is not None:
            self._metrics.record_completion_retry()

    def _record(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_completion(outcome)


def _message_content(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise CompletionResponseError("completion response had no choices") from exc
    return content or ""


def build_completion_client(
    settings: Settings,
    *,
    metrics: Optional["MetricsRegistry"] = None,
) -> CompletionClient:
    if not is_completion_configured(settings):
        raise CompletionConfigError("OPENAI_API_KEY environment variable is not set")
    config = AIConfig.from_settings(settings)
    # Retries are owned by the invocation policy, not the SDK.
    client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        max_retries=0,
        timeout=config.request_timeout_seconds,
    )
    logger.info(
        "completion_client_ready model=%s max_attempts=%s retry_delay_s=%.2f",
        config.model,
        config.max_retries,
        config.retry_delay_seconds,
    )
    return CompletionClient(client, config, metrics=metrics)
