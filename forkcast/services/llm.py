"""LLM service wrapper for OpenAI-compatible chat completion APIs."""

import asyncio
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from forkcast.config import Settings, settings as default_settings
from forkcast.errors import RateLimitError, UpstreamServiceError
from forkcast.services.admission import AdmissionController
from forkcast.services.metrics import Metrics, metrics as default_metrics

logger = logging.getLogger(__name__)

DEFAULT_MODEL_CONFIG = "openai"
DEFAULT_MAX_CONCURRENT = 50


class LLMServiceUnavailableError(UpstreamServiceError):
    """Raised when the LLM service is unavailable (API error)."""


class LLMRateLimitError(RateLimitError):
    """Raised when the LLM rate limit is exceeded."""


class LLMResponseFormatError(UpstreamServiceError):
    """Raised when the LLM reply is not the JSON object that was asked for."""


class UnknownModelConfigError(UpstreamServiceError):
    """Raised for a model configuration name that was never registered."""


@dataclass(frozen=True)
class ModelConfig:
    """Credentials, endpoint and concurrency limit for one upstream."""

    api_key: str
    base_url: str
    description: str | None = None
    max_concurrent_requests: int | None = None


def build_model_configs(settings: Settings) -> dict[str, ModelConfig]:
    """Built-in OpenAI configuration plus any configured extras."""
    configs = {
        DEFAULT_MODEL_CONFIG: ModelConfig(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            description="OpenAI chat completions",
            max_concurrent_requests=settings.openai_max_concurrent_requests,
        )
    }
    for name, extra in settings.extra_model_configs.items():
        configs[name] = ModelConfig(**extra.model_dump())
    return configs


class LLMService:
    """Async OpenAI clients, one per model configuration, behind admission control."""

    def __init__(
        self,
        model_configs: dict[str, ModelConfig] | None = None,
        settings: Settings | None = None,
        metrics: Metrics | None = None,
    ):
        self.settings = settings or default_settings
        self.model_configs = (
            model_configs if model_configs is not None else build_model_configs(self.settings)
        )
        self.metrics = metrics or default_metrics
        self.rate_limit_cooldown = self.settings.llm_rate_limit_cooldown
        self.clients: dict[str, AsyncOpenAI] = {}
        self.admission = AdmissionController(self.max_concurrent_for)

    def get_config(self, model_type: str) -> ModelConfig:
        config = self.model_configs.get(model_type)
        if config is None:
            raise UnknownModelConfigError(
                f"No configuration found for model type: {model_type}"
            )
        return config

    def max_concurrent_for(self, model_type: str) -> int:
        return self.get_config(model_type).max_concurrent_requests or DEFAULT_MAX_CONCURRENT

    def initialize(self) -> None:
        """Create clients for every configuration that has credentials."""
        for name, config in self.model_configs.items():
            if config.api_key:
                self.get_client(name)
            else:
                logger.warning(f"No API key configured for model type '{name}'")

    def get_client(self, model_type: str = DEFAULT_MODEL_CONFIG) -> AsyncOpenAI:
        """Get or create the client for a model configuration."""
        client = self.clients.get(model_type)
        if client is not None:
            return client

        config = self.get_config(model_type)
        if not config.api_key:
            raise LLMServiceUnavailableError(
                f"LLM client not initialized. No API key for model type '{model_type}'."
            )

        client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=self.settings.llm_timeout,
            max_retries=self.settings.llm_max_retries,
        )
        self.clients[model_type] = client
        return client

    async def create_chat_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        json_response: bool = True,
        model_type: str = DEFAULT_MODEL_CONFIG,
    ) -> str:
        """
        Run a chat completion through the admission queue for model_type.

        Args:
            system_prompt: System message
            user_prompt: User message
            model: Model name, defaults to the configured LLM model
            json_response: Ask the API for a JSON object reply
            model_type: Name of the upstream configuration to use

        Returns:
            The completion text

        Raises:
            LLMRateLimitError: The upstream answered 429
            LLMServiceUnavailableError: Any other API failure or an empty reply
        """
        client = self.get_client(model_type)
        model_name = model or self.settings.llm_model

        async def request() -> str:
            self.metrics.record_upstream_call(f"llm:{model_type}")
            try:
                response = await client.chat.completions.create(
                    model=model_name,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    response_format={"type": "json_object"} if json_response else openai.NOT_GIVEN,
                )
            except openai.RateLimitError as e:
                self.metrics.record_upstream_error(f"llm:{model_type}")
                logger.error(f"Rate limit exceeded for {model_type}: {e}")
                # Hold the slot briefly so queued calls do not hit the limit at once.
                await asyncio.sleep(self.rate_limit_cooldown)
                raise LLMRateLimitError(
                    f"Rate limit exceeded for {model_type}. Please try again in a moment."
                )
            except openai.APIError as e:
                self.metrics.record_upstream_error(f"llm:{model_type}")
                logger.error(f"OpenAI API error: {e}")
                raise LLMServiceUnavailableError(f"LLM service unavailable: {e}")

            content = response.choices[0].message.content
            if not content:
                self.metrics.record_upstream_error(f"llm:{model_type}")
                raise LLMServiceUnavailableError("Empty response from LLM")
            return content

        return await self.admission.submit(model_type, request)


# Global instance
llm_service = LLMService()
