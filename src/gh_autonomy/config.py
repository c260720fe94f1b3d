"""Centralized configuration for gh-autonomy."""

import json
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import yaml
from loguru import logger


class ConfigError(ValueError):
    """Raised when a configuration file or value fails validation."""


class Config:
    """
    Process-level settings with environment variable overrides.

    Repository policy and credentials live in PluginConfig; this class only
    holds values that shape how the server and HTTP client behave.
    """

    @staticmethod
    def _parse_float(name: str, default: str) -> float:
        """Parse a float environment variable."""
        raw = os.getenv(name, default)
        try:
            return float(raw)
        except ValueError as e:
            raise ValueError(f"Invalid {name} environment variable: {e}")

    # ========================================================================
    # GitHub API
    # ========================================================================
    GITHUB_API_URL: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    GITHUB_API_VERSION: str = "2022-11-28"
    USER_AGENT: str = "gh-autonomy"
    HTTP_TIMEOUT: float = _parse_float.__func__("GH_AUTONOMY_HTTP_TIMEOUT", "30")

    # ========================================================================
    # Installation Token Exchange
    # ========================================================================
    TOKEN_REFRESH_MARGIN_SECONDS: int = 30
    JWT_BACKDATE_SECONDS: int = 60
    JWT_TTL_SECONDS: int = 9 * 60  # GitHub rejects app JWTs older than 10 minutes

    # ========================================================================
    # Tool Surface
    # ========================================================================
    PROTECTED_WRITE_PREFIXES: Tuple[str, ...] = (".github/workflows/",)

    # ========================================================================
    # Logging
    # ========================================================================
    LOG_LEVEL: str = os.getenv("GH_AUTONOMY_LOG_LEVEL", "INFO")
    LOG_PATH: str = os.getenv("GH_AUTONOMY_LOG_PATH", "gh-autonomy.log")

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if not _is_http_url(cls.GITHUB_API_URL):
            errors.append(f"GITHUB_API_URL must be an http(s) URL, got {cls.GITHUB_API_URL!r}")

        if cls.HTTP_TIMEOUT <= 0:
            errors.append(f"HTTP_TIMEOUT must be > 0, got {cls.HTTP_TIMEOUT}")

        if cls.TOKEN_REFRESH_MARGIN_SECONDS < 0:
            errors.append(
                f"TOKEN_REFRESH_MARGIN_SECONDS must be >= 0, got {cls.TOKEN_REFRESH_MARGIN_SECONDS}"
            )

        if not 0 < cls.JWT_TTL_SECONDS <= 600:
            errors.append(f"JWT_TTL_SECONDS must be in (0, 600], got {cls.JWT_TTL_SECONDS}")

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


# ============================================================================
# Typed plugin configuration
# ============================================================================


class PolicyMode(str, Enum):
    """Enforcement mode stored with the policy (evaluation does not branch on it)."""

    FAIL_CLOSED = "fail_closed"
    MONITOR = "monitor"


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    """Return the first present key, accepting camelCase and snake_case spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _optional_str(data: Dict[str, Any], section: str, *keys: str) -> Optional[str]:
    value = _pick(data, *keys)
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        # App and installation ids are often written as bare numbers in YAML
        return str(value)
    if not isinstance(value, str):
        raise ConfigError(f"{section}.{keys[0]} must be a string, got {type(value).__name__}")
    return value


def _patterns(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ConfigError(f"policy.{key} must be a list of strings")
    return tuple(value)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class PolicyConfig:
    """Repository allow/deny lists and enforcement mode."""

    allowlist: Tuple[str, ...] = ()
    denylist: Tuple[str, ...] = ()
    mode: PolicyMode = PolicyMode.FAIL_CLOSED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyConfig":
        mode_value = data.get("mode") or PolicyMode.FAIL_CLOSED.value
        try:
            mode = PolicyMode(mode_value)
        except ValueError:
            valid = ", ".join(m.value for m in PolicyMode)
            raise ConfigError(f"policy.mode must be one of: {valid}; got {mode_value!r}")
        return cls(
            allowlist=_patterns(data, "allowlist"),
            denylist=_patterns(data, "denylist"),
            mode=mode,
        )


@dataclass(frozen=True)
class AuthConfig:
    """
    Credentials for the GitHub API.

    A static token serves token-mode calls; app_id, installation_id and
    private_key together enable installation tokens for app-mode calls.
    Both may be configured at once.
    """

    base_url: Optional[str] = None
    app_id: Optional[str] = None
    installation_id: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    private_key_path: Optional[str] = None
    github_token: Optional[str] = field(default=None, repr=False)

    @property
    def has_app_credentials(self) -> bool:
        return bool(self.app_id and self.installation_id and self.private_key)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthConfig":
        base_url = _optional_str(data, "auth", "base_url", "baseUrl")
        if base_url is not None and not _is_http_url(base_url):
            raise ConfigError(f"auth.base_url must be an http(s) URL, got {base_url!r}")
        return cls(
            base_url=base_url.rstrip("/") if base_url else None,
            app_id=_optional_str(data, "auth", "app_id", "appId"),
            installation_id=_optional_str(data, "auth", "installation_id", "installationId"),
            private_key=_optional_str(data, "auth", "private_key", "privateKey"),
            private_key_path=_optional_str(data, "auth", "private_key_path", "privateKeyPath"),
            github_token=_optional_str(data, "auth", "github_token", "githubToken"),
        )


@dataclass(frozen=True)
class AuditConfig:
    """Audit logging switches; directory enables the JSON Lines sink."""

    enabled: bool = True
    directory: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditConfig":
        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ConfigError("audit.enabled must be a boolean")
        return cls(enabled=enabled, directory=_optional_str(data, "audit", "directory"))


@dataclass(frozen=True)
class PluginConfig:
    """Validated configuration consumed by the governance core."""

    policy: PolicyConfig = field(default_factory=PolicyConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)

    @classmethod
    def from_dict(cls, raw: Any) -> "PluginConfig":
        """
        Build a PluginConfig from parsed YAML/JSON data.

        Args:
            raw: Parsed document (mapping, or None for an empty file)

        Returns:
            Validated PluginConfig

        Raises:
            ConfigError: If any section has the wrong shape
        """
        normalized = normalize_config(raw)
        return cls(
            policy=PolicyConfig.from_dict(_section(normalized, "policy")),
            auth=AuthConfig.from_dict(_section(normalized, "auth")),
            audit=AuditConfig.from_dict(_section(normalized, "audit")),
        )


def normalize_config(raw: Any) -> Dict[str, Any]:
    """
    Accept the flat policy layout by nesting it under ``policy``.

    A file containing only ``allowlist``/``denylist``/``mode`` at the top level
    is treated as the policy section.
    """
    if not isinstance(raw, dict):
        return {}

    if any(key in raw for key in ("policy", "auth", "audit")):
        return raw

    if any(key in raw for key in ("allowlist", "denylist", "mode")):
        rest = {k: v for k, v in raw.items() if k not in {"allowlist", "denylist", "mode"}}
        rest["policy"] = {
            "allowlist": raw.get("allowlist"),
            "denylist": raw.get("denylist"),
            "mode": raw.get("mode"),
        }
        return rest

    return raw


# ============================================================================
# Config file discovery
# ============================================================================

CONFIG_FILENAMES = ("github-policy.yaml", "github-policy.yml", "github-policy.json")
TOKEN_ENV_VARS = ("GH_AUTONOMY_GITHUB_TOKEN", "GITHUB_TOKEN")


class ConfigManager:
    """
    Locate, parse and validate the plugin configuration file.

    Search order, per candidate directory (worktree, CWD, ~/.config/gh-autonomy):
    ``.gh-autonomy/github-policy.{yaml,yml,json}`` then
    ``github-policy.{yaml,yml,json}``. The first file that parses and
    validates wins; invalid files are skipped.
    """

    def __init__(self, worktree: Optional[str] = None, home: Optional[Path] = None):
        self.worktree = worktree
        self.home = home if home is not None else Path.home()

    def candidate_paths(self) -> List[Path]:
        dirs = [self.worktree, os.getcwd(), str(self.home / ".config" / "gh-autonomy")]
        paths: List[Path] = []
        for directory in dirs:
            if not directory:
                continue
            base = Path(directory)
            paths.extend(base / ".gh-autonomy" / name for name in CONFIG_FILENAMES)
            paths.extend(base / name for name in CONFIG_FILENAMES)
        return paths

    @staticmethod
    def parse_file(path: Path, content: str) -> Any:
        if path.suffix == ".json":
            return json.loads(content)
        return yaml.safe_load(content)

    def load(self) -> PluginConfig:
        """
        Load the first valid configuration file, or defaults.

        Returns:
            PluginConfig with private key hydrated and token env fallback applied
        """
        for path in self.candidate_paths():
            try:
                content = path.read_text(encoding="utf-8")
            except OSError:
                continue
            if not content.strip():
                continue

            try:
                config = PluginConfig.from_dict(self.parse_file(path, content))
            except (ConfigError, ValueError, yaml.YAMLError) as e:
                logger.warning(f"Skipping invalid config file {path}: {e}")
                continue

            logger.info(f"Loaded GitHub policy config from {path}")
            return self._finalize(config)

        logger.info("No GitHub policy config found, using defaults (fail_closed, empty lists)")
        return self._finalize(PluginConfig())

    def _finalize(self, config: PluginConfig) -> PluginConfig:
        return self._apply_token_env(self._hydrate_private_key(config))

    @staticmethod
    def _hydrate_private_key(config: PluginConfig) -> PluginConfig:
        auth = config.auth
        if auth.private_key or not auth.private_key_path:
            return config
        key_path = Path(auth.private_key_path).expanduser()
        try:
            content = key_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read private key from {key_path}: {e}")
            return config
        return replace(config, auth=replace(auth, private_key=content))

    @staticmethod
    def _apply_token_env(config: PluginConfig) -> PluginConfig:
        if config.auth.github_token:
            return config
        for name in TOKEN_ENV_VARS:
            token = os.getenv(name)
            if token:
                logger.debug(f"Using GitHub token from {name}")
                return replace(config, auth=replace(config.auth, github_token=token))
        return config
