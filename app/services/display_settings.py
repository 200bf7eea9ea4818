"""Read access to display preferences used by the table presentation layer."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError

from app.config import Settings, settings as app_settings
from app.schemas.display_settings import DisplaySettings

logger = logging.getLogger(__name__)


class DisplaySettingsProvider(Protocol):
    def get_display_settings(self) -> DisplaySettings: ...


class StaticDisplaySettingsProvider:
    def __init__(self, display: DisplaySettings | None = None):
        self._display = display or DisplaySettings()

    def get_display_settings(self) -> DisplaySettings:
        return self._display


class ConfigDisplaySettingsProvider:
    """Builds display settings from the DISPLAY_* application settings.

    Invalid values fall back to the defaults with a warning, so a bad
    environment variable never breaks table rendering.
    """

    def __init__(self, config: Settings | None = None):
        self._config = config or app_settings
        self._cached: DisplaySettings | None = None

    def get_display_settings(self) -> DisplaySettings:
        if self._cached is None:
            self._cached = self._load()
        return self._cached

    def _load(self) -> DisplaySettings:
        values = {
            "date_format": self._config.display_date_format,
            "time_format": self._config.display_time_format,
            "number_format": self._config.display_number_format,
            "currency_symbol": self._config.display_currency_symbol,
            "currency_code": self._config.display_currency_code,
            "show_currency_code": self._config.display_show_currency_code,
            "decimal_places": self._config.display_decimal_places,
            "table_density": self._config.display_table_density,
        }
        try:
            return DisplaySettings(**values)
        except ValidationError as exc:
            logger.warning("Invalid display settings, using defaults: %s", exc)
            return DisplaySettings()
