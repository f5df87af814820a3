"""Configuration loading for sitegen (.sitegen.yml plus environment overrides)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".sitegen.yml"
FALLBACK_POLICIES = ("fallback", "fail")

DEFAULT_INSTALL_COMMAND = ["npm", "install", "--no-audit", "--no-fund"]
DEFAULT_DEV_COMMAND = [
    "npx",
    "vite",
    "--host",
    "{host}",
    "--port",
    "{port}",
    "--strictPort",
]


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class LLMConfig:
    """Remote generation service settings."""

    model: str = "gemini-1.5-flash"
    api_key: Optional[str] = None
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    request_timeout: float = 120.0


@dataclass
class RetryConfig:
    """Backoff settings around the remote generation call."""

    max_attempts: int = 3
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0
    on_exhaustion: str = "fallback"


@dataclass
class PreviewConfig:
    """Dependency install and dev-server supervision settings."""

    host: str = "0.0.0.0"
    port: int = 5173
    public_host: str = "localhost"
    install_command: List[str] = field(default_factory=lambda: list(DEFAULT_INSTALL_COMMAND))
    dev_command: List[str] = field(default_factory=lambda: list(DEFAULT_DEV_COMMAND))
    install_timeout: float = 120.0
    start_timeout: float = 2.0
    stop_grace_period: float = 5.0

    @property
    def url(self) -> str:
        return f"http://{self.public_host}:{self.port}"


@dataclass
class ServerConfig:
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 5000
    min_request_interval: float = 5.0
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class SiteGenConfig:
    """Represents the effective settings for one server process."""

    root: Path
    workspace_dir: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> SiteGenConfig:
    """Load configuration from disk and apply environment overrides."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    workspace = _as_str(data.get("workspace_dir")) or "generated-site"
    config = SiteGenConfig(root=root, workspace_dir=(root / workspace).resolve())

    llm_data = _as_dict(data.get("llm"))
    if llm_data:
        llm = config.llm
        llm.model = _as_str(llm_data.get("model")) or llm.model
        llm.api_key = _as_str(llm_data.get("api_key")) or llm.api_key
        llm.base_url = _as_str(llm_data.get("base_url")) or llm.base_url
        llm.temperature = _as_float(llm_data.get("temperature"))
        llm.max_tokens = _as_int(llm_data.get("max_tokens"))
        llm.request_timeout = _as_float(llm_data.get("request_timeout")) or llm.request_timeout

    retry_data = _as_dict(data.get("retry"))
    if retry_data:
        retry = config.retry
        retry.max_attempts = _as_int(retry_data.get("max_attempts")) or retry.max_attempts
        initial_delay = _as_float(retry_data.get("initial_delay"))
        if initial_delay is not None:
            retry.initial_delay = initial_delay
        retry.backoff_multiplier = (
            _as_float(retry_data.get("backoff_multiplier")) or retry.backoff_multiplier
        )
        retry.on_exhaustion = _as_str(retry_data.get("on_exhaustion")) or retry.on_exhaustion

    preview_data = _as_dict(data.get("preview"))
    if preview_data:
        preview = config.preview
        preview.host = _as_str(preview_data.get("host")) or preview.host
        preview.port = _as_int(preview_data.get("port")) or preview.port
        preview.public_host = _as_str(preview_data.get("public_host")) or preview.public_host
        preview.install_command = (
            _as_str_list(preview_data.get("install_command")) or preview.install_command
        )
        preview.dev_command = _as_str_list(preview_data.get("dev_command")) or preview.dev_command
        preview.install_timeout = (
            _as_float(preview_data.get("install_timeout")) or preview.install_timeout
        )
        preview.start_timeout = _as_float(preview_data.get("start_timeout")) or preview.start_timeout
        preview.stop_grace_period = (
            _as_float(preview_data.get("stop_grace_period")) or preview.stop_grace_period
        )

    server_data = _as_dict(data.get("server"))
    if server_data:
        server = config.server
        server.host = _as_str(server_data.get("host")) or server.host
        server.port = _as_int(server_data.get("port")) or server.port
        interval = _as_float(server_data.get("min_request_interval"))
        if interval is not None:
            server.min_request_interval = interval
        server.cors_origins = _as_str_list(server_data.get("cors_origins")) or server.cors_origins

    _apply_environment(config, env)
    _validate(config)
    return config


def _apply_environment(config: SiteGenConfig, env: Mapping[str, str]) -> None:
    api_key = env.get("GEMINI_API_KEY") or env.get("SITEGEN_API_KEY")
    if api_key:
        config.llm.api_key = api_key
    model = env.get("SITEGEN_MODEL")
    if model:
        config.llm.model = model
    port = _as_int(env.get("SITEGEN_PORT") or env.get("PORT"))
    if port:
        config.server.port = port
    preview_port = _as_int(env.get("SITEGEN_PREVIEW_PORT"))
    if preview_port:
        config.preview.port = preview_port
    workspace = env.get("SITEGEN_WORKSPACE_DIR")
    if workspace:
        config.workspace_dir = (config.root / workspace).resolve()
    policy = env.get("SITEGEN_ON_EXHAUSTION")
    if policy:
        config.retry.on_exhaustion = policy


def _validate(config: SiteGenConfig) -> None:
    if config.retry.on_exhaustion not in FALLBACK_POLICIES:
        raise ConfigError(
            f"retry.on_exhaustion must be one of {', '.join(FALLBACK_POLICIES)}; "
            f"got {config.retry.on_exhaustion!r}"
        )
    if config.retry.max_attempts < 1:
        raise ConfigError("retry.max_attempts must be at least 1")
    if config.preview.port == config.server.port:
        raise ConfigError("preview.port must differ from server.port")


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
