# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Widget configuration for GhostChat.

This module provides:
- WidgetConfig dataclass with the widget defaults
- merge_options() to overlay user options on the defaults
- load_config() to parse a YAML config file
- config_from_env() to read GHOSTCHAT_* environment variables

Option names follow the embed snippet (camelCase, e.g. ``licenseKey``);
snake_case names are accepted as well.
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import logging
import os

import yaml

from ghostchat.errors import ConfigError
from ghostchat.tiers import BASELINE_PROVIDER, FALLBACK_THEME, ContextMode

logger = logging.getLogger(__name__)

DEFAULT_LICENSE_API_URL = "https://your-license-server.com/api/validate-license"

# Outbound request timeout bounds, in seconds
DEFAULT_REQUEST_TIMEOUT = 30.0
MIN_REQUEST_TIMEOUT = 1.0
MAX_REQUEST_TIMEOUT = 300.0

ENV_PREFIX = "GHOSTCHAT_"


@dataclass
class WidgetConfig:
    """Configuration consumed by a chat session.

    Attributes:
        license_key: License key to validate (None for the free tier)
        theme: Widget theme identifier
        provider: Provider selector, ``namespace:model`` or bare ``namespace``
        api_key: Provider credential (None means offline mode)
        context_mode: Page context mode, or None for no context
        context_url: Page to build context from
        position: Widget corner
        primary_color: Accent colour
        welcome_message: First assistant bubble
        placeholder: Input placeholder text
        license_api_url: License validation endpoint
        button_text: Launcher button label
        offline_mode: Force canned responses even with a credential
        request_timeout: Per-request timeout in seconds
    """

    license_key: Optional[str] = None
    theme: str = FALLBACK_THEME
    provider: str = BASELINE_PROVIDER
    api_key: Optional[str] = None
    context_mode: Optional[ContextMode] = None
    context_url: Optional[str] = None
    position: str = "bottom-right"
    primary_color: str = "#4F46E5"
    welcome_message: str = "Hi! How can I help you today?"
    placeholder: str = "Type your message..."
    license_api_url: str = DEFAULT_LICENSE_API_URL
    button_text: str = "Chat with us"
    offline_mode: bool = False
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


# Embed-snippet option names mapped to WidgetConfig fields
OPTION_ALIASES = {
    "licenseKey": "license_key",
    "apiKey": "api_key",
    "contextMode": "context_mode",
    "contextUrl": "context_url",
    "primaryColor": "primary_color",
    "welcomeMessage": "welcome_message",
    "licenseApiUrl": "license_api_url",
    "buttonText": "button_text",
    "offlineMode": "offline_mode",
    "requestTimeout": "request_timeout",
}

_FIELD_NAMES = {f.name for f in fields(WidgetConfig)}


def _clamp_timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_REQUEST_TIMEOUT
    return max(MIN_REQUEST_TIMEOUT, min(float(value), MAX_REQUEST_TIMEOUT))


def merge_options(
    options: Optional[Mapping[str, Any]] = None,
    defaults: Optional[WidgetConfig] = None,
) -> WidgetConfig:
    """
    Overlay user options on the widget defaults.

    Unknown keys are ignored with a warning. A ``None`` license endpoint
    keeps the default endpoint.

    Args:
        options: User options (camelCase or snake_case keys)
        defaults: Base configuration (WidgetConfig() if omitted)

    Returns:
        Merged WidgetConfig
    """
    base = defaults or WidgetConfig()
    changes: Dict[str, Any] = {}

    for key, value in (options or {}).items():
        name = OPTION_ALIASES.get(key, key)
        if name not in _FIELD_NAMES:
            logger.warning(f"Ignoring unknown option '{key}'")
            continue
        changes[name] = value

    if "context_mode" in changes and not isinstance(changes["context_mode"], ContextMode):
        changes["context_mode"] = ContextMode.parse(changes["context_mode"])
    if "license_api_url" in changes and not changes["license_api_url"]:
        del changes["license_api_url"]
    if "request_timeout" in changes:
        changes["request_timeout"] = _clamp_timeout(changes["request_timeout"])
    if "offline_mode" in changes:
        changes["offline_mode"] = bool(changes["offline_mode"])

    return replace(base, **changes)


def load_config(config_path: Path) -> WidgetConfig:
    """Load widget configuration from a YAML file.

    The file holds a ``widget:`` mapping of options. A missing or
    unparsable file yields the defaults.

    Args:
        config_path: Path to the YAML file

    Returns:
        WidgetConfig with settings from the file or defaults

    Raises:
        ConfigError: If the file parses but is not a mapping
    """
    config_path = Path(config_path)

    if not config_path.exists():
        logger.info(f"No config at {config_path}, using defaults")
        return WidgetConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, IOError) as e:
        logger.warning(f"Could not read {config_path}: {e}")
        return WidgetConfig()

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    widget = data.get("widget", data)
    if not isinstance(widget, dict):
        raise ConfigError(f"{config_path}: 'widget' must be a mapping")

    # Only scalars are meaningful as option values
    options = {
        k: v
        for k, v in widget.items()
        if isinstance(k, str) and (v is None or isinstance(v, (str, int, float, bool)))
    }
    return merge_options(options)


def config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    defaults: Optional[WidgetConfig] = None,
) -> WidgetConfig:
    """Overlay GHOSTCHAT_* environment variables on a configuration.

    e.g. GHOSTCHAT_API_KEY, GHOSTCHAT_PROVIDER, GHOSTCHAT_LICENSE_KEY.
    """
    environ = os.environ if environ is None else environ
    options: Dict[str, Any] = {}

    for name in _FIELD_NAMES:
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        if name == "offline_mode":
            options[name] = raw.strip().lower() in ("1", "true", "yes", "on")
        elif name == "request_timeout":
            try:
                options[name] = float(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}REQUEST_TIMEOUT={raw!r}")
        else:
            options[name] = raw

    return merge_options(options, defaults=defaults)
