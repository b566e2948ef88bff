"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
API endpoints are declared as a list so that sessions can be resolved
either by name or by the capability they need (e.g. the JSON reformat pass
and tool-call resolution both ask for a `tool_use` capable model).
"""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelCapability(str, Enum):
    """What a configured model is good for."""

    CHAT = "chat"
    TOOL_USE = "tool_use"
    LONG_CONTEXT = "long_context"
    REASONING = "reasoning"


class ApiNotConfiguredError(LookupError):
    """Raised when no configured API matches a name or capability."""


class ApiSettings(BaseModel):
    """One chat-completion endpoint."""

    name: str = Field(description="Lookup name, e.g. 'default' or 'deepseek'")
    model: str = Field(
        default="openai/gpt-4o-mini",
        description="LiteLLM model string. The provider prefix tells LiteLLM how to "
                    "talk to the endpoint; 'openai/<model>' works for any "
                    "OpenAI-compatible server when base_url is set.",
    )
    base_url: str | None = Field(
        default=None,
        description="Endpoint base URL (LiteLLM api_base). None uses the provider default.",
    )
    api_key: str = Field(default="", description="Bearer token for the endpoint")
    capabilities: list[ModelCapability] = Field(
        default_factory=lambda: list(ModelCapability),
        description="Capabilities this model is used for",
    )


class LLMSettings(BaseSettings):
    """LLM API configuration."""

    apis: list[ApiSettings] = Field(
        default_factory=lambda: [ApiSettings(name="default")],
        description="Configured endpoints. Set via LLM_APIS='[{\"name\": ..., ...}]'",
    )
    temperature: float = Field(default=0.7, description="Sampling temperature for answers")
    json_temperature: float = Field(
        default=0.0,
        description="Sampling temperature for the JSON reformat and call-resolution sessions",
    )
    max_tokens: int | None = Field(default=None, description="Maximum tokens in response")
    timeout: float = Field(default=120.0, description="Per-request timeout in seconds")
    num_retries: int = Field(
        default=2,
        description="Retries performed by LiteLLM itself. rhine never retries on its own.",
    )
    structured_output_mode: Literal["two_pass", "single_pass"] = Field(
        default="two_pass",
        description="'two_pass' answers freely then reformats into the schema with a "
                    "second request; 'single_pass' constrains the answer directly.",
    )
    tool_call_resolution: Literal["model", "local"] = Field(
        default="model",
        description="'model' asks the LLM to turn each directive into a function call; "
                    "'local' expects directives to already be JSON {name, arguments}.",
    )

    model_config = SettingsConfigDict(env_prefix="LLM_")

    def get_api(self, name: str) -> ApiSettings:
        """Look up an API by its configured name."""
        for api in self.apis:
            if api.name == name:
                return api
        raise ApiNotConfiguredError(
            f"No API named {name!r} (configured: {[api.name for api in self.apis]})"
        )

    def get_api_for_capability(self, capability: ModelCapability) -> ApiSettings:
        """Return the first configured API that lists the capability."""
        for api in self.apis:
            if capability in api.capabilities:
                return api
        raise ApiNotConfiguredError(f"No API configured with capability {capability.value!r}")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    llm: LLMSettings = Field(default_factory=LLMSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
