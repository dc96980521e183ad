"""Load, validate, and hot-reload the provider endpoint configuration.

The config lives in ``providers.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_provider_config()`` to re-read
from disk — no restart required.

Usage::

    from src.providers.config_loader import get_provider_config

    config = get_provider_config()
    fitbit = config.provider("fitbit")
    fitbit.token_url           # "https://api.fitbit.com/oauth2/token"
    fitbit.default_device_id   # "fitbit_primary"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("tracklink.providers.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "providers.yaml"

_REQUIRED_URL_KEYS = ("token_url", "profile_url")


@dataclass(frozen=True)
class ProviderEndpoints:
    """Static, non-secret settings for one OAuth provider.

    Attributes:
        slug:                Provider tag stored in the connections table.
        display_name:        Human-readable name; default device name fallback.
        token_url:           OAuth2 token endpoint (code exchange and refresh).
        profile_url:         "Who am I" endpoint read after the exchange.
        default_expires_in:  Token lifetime in seconds when the provider omits it.
        default_device_id:   Sentinel stored when the profile has no identifier.
        default_device_name: Sentinel stored when the profile has no name.
        data_urls:           Daily-metric endpoints keyed by metric; may hold
                             ``str.format`` placeholders for dates.
    """

    slug: str
    display_name: str
    token_url: str
    profile_url: str
    default_expires_in: int
    default_device_id: str
    default_device_name: str
    data_urls: dict[str, str] = field(default_factory=dict)


@dataclass
class ProviderConfig:
    """Complete, validated provider configuration."""

    version: str
    providers: dict[str, ProviderEndpoints]
    _raw: dict = field(default_factory=dict, repr=False)

    def provider(self, slug: str) -> ProviderEndpoints:
        """Return the endpoints for a provider slug.

        Raises:
            KeyError: If the slug is not configured.
        """
        if slug not in self.providers:
            raise KeyError(
                f"No provider configured for '{slug}'. "
                f"Available: {sorted(self.providers)}"
            )
        return self.providers[slug]


class ConfigValidationError(ValueError):
    """Raised when providers.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Provider config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> ProviderConfig:
    """Validate the raw YAML dict and construct a ProviderConfig.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    providers_raw = raw.get("providers", {})
    if not providers_raw:
        errors.append("'providers' section is missing or empty")

    providers: dict[str, ProviderEndpoints] = {}
    for slug, cfg in (providers_raw or {}).items():
        if not isinstance(cfg, dict):
            errors.append(f"providers.{slug} must be a mapping")
            continue

        missing = [key for key in _REQUIRED_URL_KEYS if not cfg.get(key)]
        for key in missing:
            errors.append(f"Missing required key '{key}' in section 'providers.{slug}'")
        for key in _REQUIRED_URL_KEYS:
            url = cfg.get(key)
            if url and not str(url).startswith("https://"):
                errors.append(f"providers.{slug}.{key} must be an https URL, got {url!r}")

        expires_raw: Any = cfg.get("default_expires_in", 3600)
        try:
            expires_in = int(expires_raw)
        except (TypeError, ValueError):
            errors.append(
                f"providers.{slug}.default_expires_in must be an integer, got {expires_raw!r}"
            )
            continue
        if expires_in <= 0:
            errors.append(f"providers.{slug}.default_expires_in must be positive")

        data_urls = cfg.get("data_urls") or {}
        if not isinstance(data_urls, dict):
            errors.append(f"providers.{slug}.data_urls must be a mapping")
            continue
        for metric, url in data_urls.items():
            if not str(url).startswith("https://"):
                errors.append(
                    f"providers.{slug}.data_urls.{metric} must be an https URL, got {url!r}"
                )

        if missing:
            continue

        display_name = str(cfg.get("display_name", slug.title()))
        providers[slug] = ProviderEndpoints(
            slug=slug,
            display_name=display_name,
            token_url=str(cfg["token_url"]),
            profile_url=str(cfg["profile_url"]),
            default_expires_in=expires_in,
            default_device_id=str(cfg.get("default_device_id", f"{slug}_primary")),
            default_device_name=str(cfg.get("default_device_name", display_name)),
            data_urls={str(k): str(v) for k, v in data_urls.items()},
        )

    if errors:
        raise ConfigValidationError(
            f"providers.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return ProviderConfig(version=version, providers=providers, _raw=raw)


def load_provider_config(path: Path | None = None) -> ProviderConfig:
    """Load and validate the provider config from disk.

    Args:
        path: Override path to YAML. Uses the bundled providers.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info(
        "Loaded provider config v%s from %s (%s)",
        config.version,
        target,
        ", ".join(sorted(config.providers)),
    )
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: ProviderConfig | None = None
_config_lock = threading.Lock()


def get_provider_config() -> ProviderConfig:
    """Return the global ProviderConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_provider_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_provider_config()
    return _config


def reload_provider_config(path: Path | None = None) -> ProviderConfig:
    """Reload the provider config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_provider_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded provider config: %s → %s", old_version, new_config.version)
    return new_config
