"""Configuration management for tracecore."""

from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from .error_handling import ConfigError


def default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "tracecore"


class SearchConfig(BaseModel):
    max_results: int = 10
    match_threshold: float = 0.3
    provider_timeout_ms: int = 250
    cache_size: int = 128
    cache_ttl_seconds: int = 30
    program_limit: int = 30

    @field_validator('match_threshold')
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("match_threshold must be between 0 and 1")
        return v

    @field_validator('max_results', 'provider_timeout_ms', 'program_limit')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator('cache_size', 'cache_ttl_seconds')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v


class UsageConfig(BaseModel):
    debounce_seconds: float = 1.0
    file_name: str = "usage_data.json"

    @field_validator('debounce_seconds')
    @classmethod
    def validate_debounce(cls, v: float) -> float:
        if v < 0:
            raise ValueError("debounce_seconds must not be negative")
        return v


class ProvidersConfig(BaseModel):
    programs: bool = True
    commands: bool = True
    system_settings: bool = True
    window_placement: bool = True
    shortcuts: bool = True
    network: bool = True
    calculator: bool = True
    web_search: bool = True


class ApiConfig(BaseModel):
    host: str = "localhost"
    port: int = 8765


class FolderShortcut(BaseModel):
    id: str
    name: str
    path: str
    is_default: bool = False

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class QuickLink(BaseModel):
    id: str
    name: str
    url: str
    keywords: List[str] = Field(default_factory=list)


class WebSearchEngine(BaseModel):
    id: str
    name: str
    url_template: str
    subtitle: str = "Open in browser"


def _default_folders() -> List[FolderShortcut]:
    folders = [
        ("home", "Home", "~"),
        ("desktop", "Desktop", "~/Desktop"),
        ("documents", "Documents", "~/Documents"),
        ("downloads", "Downloads", "~/Downloads"),
        ("pictures", "Pictures", "~/Pictures"),
        ("videos", "Videos", "~/Videos"),
        ("music", "Music", "~/Music"),
    ]
    return [FolderShortcut(id=i, name=n, path=p, is_default=True) for i, n, p in folders]


def _default_engines() -> List[WebSearchEngine]:
    return [
        WebSearchEngine(
            id="google", name="Google",
            url_template="https://www.google.com/search?q={query}",
        ),
        WebSearchEngine(
            id="duckduckgo", name="DuckDuckGo",
            url_template="https://duckduckgo.com/?q={query}",
            subtitle="Privacy-focused search",
        ),
        WebSearchEngine(
            id="perplexity", name="Perplexity",
            url_template="https://www.perplexity.ai/search?q={query}",
            subtitle="AI-powered search",
        ),
    ]


class Config(BaseModel):
    """Main configuration for the tracecore daemon."""

    data_dir: Path = Field(default_factory=default_data_dir)
    search: SearchConfig = Field(default_factory=SearchConfig)
    usage: UsageConfig = Field(default_factory=UsageConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    folders: List[FolderShortcut] = Field(default_factory=_default_folders)
    quick_links: List[QuickLink] = Field(default_factory=list)
    web_search: List[WebSearchEngine] = Field(default_factory=_default_engines)

    @field_validator('data_dir')
    @classmethod
    def validate_data_dir(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @property
    def usage_path(self) -> Path:
        return self.data_dir / self.usage.file_name

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"

    @classmethod
    def default_locations(cls) -> List[Path]:
        return [
            Path("tracecore.yaml"),
            Path.home() / ".config" / "tracecore" / "config.yaml",
            Path("/etc/tracecore/config.yaml"),
        ]

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML; defaults when no file is found."""
        if config_path is None:
            for candidate in cls.default_locations():
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.info("No config file found, using defaults")
                return cls()

        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode='json'), f, default_flow_style=False)
