from app.config import Settings
from app.services.display_settings import ConfigDisplaySettingsProvider


def test_display_settings_from_config():
    config = Settings(
        display_date_format="YYYY-MM-DD",
        display_number_format="dot",
        display_currency_symbol="€",
        display_currency_code="EUR",
        display_show_currency_code=True,
        display_table_density="spacious",
    )
    display = ConfigDisplaySettingsProvider(config).get_display_settings()
    assert display.date_format == "YYYY-MM-DD"
    assert display.number_format == "dot"
    assert display.currency_symbol == "€"
    assert display.show_currency_code is True
    assert display.table_density == "spacious"


def test_invalid_display_settings_fall_back_to_defaults():
    config = Settings(display_date_format="someday", display_decimal_places=9)
    display = ConfigDisplaySettingsProvider(config).get_display_settings()
    assert display.date_format == "MM/DD/YYYY"
    assert display.decimal_places == 2


def test_display_settings_are_cached():
    provider = ConfigDisplaySettingsProvider(Settings())
    assert provider.get_display_settings() is provider.get_display_settings()
