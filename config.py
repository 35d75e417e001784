"""config.py — Typography defaults, overridable from the environment (.env)."""

import os
from typing import Mapping

from models import TypographyConfig

ENV_PREFIX = "PAGEBOOK_"

# env suffix → (TypographyConfig field, converter)
_TYPOGRAPHY_ENV = {
    "FONT_SIZE": ("font_size_pt", float),
    "FONT_FAMILY": ("font_family", str),
    "LINE_HEIGHT": ("line_height_multiplier", float),
    "PAGE_WIDTH": ("page_width_px", float),
    "PAGE_HEIGHT": ("page_height_px", float),
    "PADDING": ("padding_px", float),
}

DEFAULT_TYPOGRAPHY = TypographyConfig()


class ConfigError(ValueError):
    pass


def validate_typography(config: TypographyConfig) -> TypographyConfig:
    if config.font_size_pt <= 0:
        raise ConfigError(f"font size must be positive, got {config.font_size_pt}")
    if config.line_height_multiplier <= 0:
        raise ConfigError(f"line height must be positive, got {config.line_height_multiplier}")
    if config.page_width_px <= 2 * config.padding_px or config.page_height_px <= 2 * config.padding_px:
        raise ConfigError("page is smaller than its padding")
    if config.padding_px < 0:
        raise ConfigError(f"padding cannot be negative, got {config.padding_px}")
    return config


def typography_from_env(
    environ: Mapping[str, str] | None = None,
    base: TypographyConfig = DEFAULT_TYPOGRAPHY,
) -> TypographyConfig:
    """Apply PAGEBOOK_* overrides on top of base."""
    environ = os.environ if environ is None else environ
    changes = {}
    for suffix, (field_name, convert) in _TYPOGRAPHY_ENV.items():
        raw = environ.get(ENV_PREFIX + suffix, "").strip()
        if not raw:
            continue
        try:
            changes[field_name] = convert(raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}{suffix}={raw!r} is not valid") from e
    return validate_typography(base.with_changes(**changes))


def font_file_from_env(environ: Mapping[str, str] | None = None) -> str | None:
    environ = os.environ if environ is None else environ
    return environ.get(ENV_PREFIX + "FONT_FILE", "").strip() or None
