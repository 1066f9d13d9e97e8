"""Configuration management with environment variables and .env files."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.table import Table

# ---------------------------------------------------------------------------
# LLM configs
# ---------------------------------------------------------------------------


class LLMConfig(BaseSettings):
    """Default OpenAI-compatible endpoint used for analysis and translation."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = Field(default="", description="API key for the analysis service")
    base_url: str = Field(default="https://api.openai.com/v1", description="API base URL")
    model: str = Field(default="gpt-4.1-mini", description="Model name")
    max_tokens: int = Field(default=4096, description="Max tokens per request")
    temperature: float = Field(default=0.2, description="Temperature for generation")


class TaskLLMConfig(BaseSettings):
    """Task-specific LLM override. Empty fields fall back to the default LLM config."""

    api_key: str = Field(default="", description="API key")
    base_url: str = Field(default="", description="API base URL")
    model: str = Field(default="", description="Model name")
    max_tokens: int = Field(default=0, description="Max tokens per request")
    temperature: float = Field(default=0.0, description="Temperature")


class AnalysisLLMConfig(TaskLLMConfig):
    """LLM configuration for single-sentence grammatical analysis."""

    model_config = SettingsConfigDict(env_prefix="ANALYSIS_LLM_")


class TranslationLLMConfig(TaskLLMConfig):
    """LLM configuration for batch sentence translation."""

    model_config = SettingsConfigDict(env_prefix="TRANSLATION_LLM_")


# ---------------------------------------------------------------------------
# Core configs
# ---------------------------------------------------------------------------


class SegmenterConfig(BaseSettings):
    """Chapter heading detection and chapter splitting."""

    model_config = SettingsConfigDict(env_prefix="SEGMENTER_")

    max_chapter_length: int = Field(
        default=5000,
        gt=0,
        description="Chapters longer than this (characters) are split into parts",
    )
    last_part_tolerance: float = Field(
        default=1.2,
        ge=1,
        description="Remaining text up to max_chapter_length * tolerance stays in one last part",
    )
    heading_keywords: list[str] = Field(
        default_factory=lambda: ["Chương", "Hồi", "Quyển", "Chapter", "卷", "第"],
        description="Words that start a chapter heading line",
    )
    heading_suffixes: list[str] = Field(
        default_factory=lambda: ["章", "回", "节", "話", "篇", "卷之"],
        description="Counters that may follow the chapter numeral",
    )
    default_title: str = Field(
        default="Văn bản chính", description="Title used when no heading is found"
    )
    preface_title: str = Field(
        default="Phần mở đầu", description="Title for text before the first heading"
    )
    part_label: str = Field(default="Part", description="Label in titles of split parts")


class QueueConfig(BaseSettings):
    """Task queue and batch processing."""

    model_config = SettingsConfigDict(env_prefix="QUEUE_")

    batch_size: int = Field(default=10, gt=0, description="Sentences per batch translation request")
    pacing_ms: int = Field(
        default=500, ge=0, description="Pause between batches/sentences in ms (rate limiting)"
    )
    chain_analysis_after_translation: bool = Field(
        default=True,
        description="Queue sequential chapter analysis after a chapter translation completes",
    )


class StorageConfig(BaseSettings):
    """Durable local storage."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path = Field(
        default=Path(".doc_truyen"), description="Directory for caches, vocabulary and files"
    )


# ---------------------------------------------------------------------------
# Main AppConfig with SECTIONS registry
# ---------------------------------------------------------------------------

# Maps section key → AppConfig attribute name.
SECTIONS: dict[str, str] = {
    "llm": "llm",
    "analysis_llm": "analysis_llm",
    "translation_llm": "translation_llm",
    "segmenter": "segmenter",
    "queue": "queue",
    "storage": "storage",
}


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    analysis_llm: AnalysisLLMConfig = Field(default_factory=AnalysisLLMConfig)
    translation_llm: TranslationLLMConfig = Field(default_factory=TranslationLLMConfig)
    segmenter: SegmenterConfig = Field(default_factory=SegmenterConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "AppConfig":
        """Load configuration from environment and .env file."""
        from dotenv import load_dotenv

        if env_file and env_file.exists():
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            llm=LLMConfig(),
            analysis_llm=AnalysisLLMConfig(),
            translation_llm=TranslationLLMConfig(),
            segmenter=SegmenterConfig(),
            queue=QueueConfig(),
            storage=StorageConfig(),
        )


# ---------------------------------------------------------------------------
# Global config singleton
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


# ---------------------------------------------------------------------------
# LLM config helpers
# ---------------------------------------------------------------------------


def get_effective_llm_config(specific: TaskLLMConfig, fallback: LLMConfig) -> LLMConfig:
    """Merge a task-specific LLM config with the default for unset values.

    Args:
        specific: AnalysisLLMConfig or TranslationLLMConfig
        fallback: Default LLMConfig

    Returns:
        LLMConfig with merged values
    """
    return LLMConfig(
        api_key=specific.api_key or fallback.api_key,
        base_url=specific.base_url or fallback.base_url,
        model=specific.model or fallback.model,
        max_tokens=specific.max_tokens or fallback.max_tokens,
        temperature=specific.temperature if specific.temperature > 0 else fallback.temperature,
    )


def _mask(api_key: str) -> str:
    return api_key[:8] + "..." if len(api_key) > 8 else "***"


def log_config_summary(config: Optional[AppConfig] = None) -> None:
    """Print the effective LLM and queue configuration as a table."""
    console = Console()
    app_config = config or get_config()

    table = Table(show_header=True, header_style="bold blue", title="LLM Configuration")
    table.add_column("Task", style="cyan", width=12)
    table.add_column("Model", style="green")
    table.add_column("Base URL", style="yellow")
    table.add_column("API Key", style="magenta")
    table.add_column("Source", style="dim")

    table.add_row(
        "Default",
        app_config.llm.model,
        app_config.llm.base_url,
        _mask(app_config.llm.api_key),
        "OPENAI_*",
    )

    task_configs: list[tuple[str, TaskLLMConfig]] = [
        ("Analysis", app_config.analysis_llm),
        ("Translation", app_config.translation_llm),
    ]
    for task_name, task_cfg in task_configs:
        effective = get_effective_llm_config(task_cfg, app_config.llm)
        has_override = bool(task_cfg.model or task_cfg.api_key or task_cfg.base_url)
        source = f"{task_name.upper()}_LLM_*" if has_override else "OPENAI_* (fallback)"
        table.add_row(
            task_name,
            effective.model,
            effective.base_url,
            _mask(effective.api_key),
            source,
        )

    console.print(table)
    console.print(
        f"[blue]Batch size: {app_config.queue.batch_size} • "
        f"Pacing: {app_config.queue.pacing_ms} ms • "
        f"Max chapter length: {app_config.segmenter.max_chapter_length}[/blue]"
    )
