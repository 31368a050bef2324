"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompactionConfig(BaseModel):
    """Budget for the compacted message set sent to the model."""
    max_tokens: int = Field(default=4000, gt=0)
    max_messages: int = Field(default=15, gt=0)
    preserve_system_message: bool = True
    preserve_recent_messages: int = Field(default=6, gt=0)  # never dropped


class SummaryConfig(BaseModel):
    """Synthetic summary that stands in for dropped history."""
    enabled: bool = True
    strategy: Literal["llm", "digest"] = "llm"  # digest never calls the model
    drop_threshold: int = Field(default=5, ge=0)
    max_input_messages: int = Field(default=10, gt=0)
    excerpt_chars: int = Field(default=100, gt=0)
    max_output_tokens: int = Field(default=150, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=4.0, gt=0)


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None
    model: str = "gemini/gemini-2.0-flash"
    summary_model: str | None = None  # defaults to model
    timeout_seconds: float = 45.0


class ChatConfig(BaseModel):
    """Chat completion defaults."""
    max_output_tokens: int = Field(default=2048, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class StorageConfig(BaseModel):
    """Message store configuration."""
    sessions_dir: str = "~/.chatcompact/sessions"
    cache_size: int = Field(default=200, gt=0)


class Config(BaseSettings):
    """Root configuration for chatcompact."""
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = SettingsConfigDict(
        env_prefix="CHATCOMPACT_",
        env_nested_delimiter="__",
    )

    @property
    def sessions_path(self) -> Path:
        """Get expanded sessions directory."""
        return Path(self.storage.sessions_dir).expanduser()

    def get_summary_model(self) -> str:
        return self.provider.summary_model or self.provider.model
