"""Type-aware formatting of record values for table, detail and export output.

Formatting never raises: missing keys, ``None`` and unparseable dates or
numbers degrade to the empty placeholder or the raw string.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.schemas.display_settings import DisplaySettings
from app.services.dynamic_filters import FilterValidationError, coerce_value
from app.services.resource_config import FieldDescriptor, ValueType

logger = logging.getLogger(__name__)

CURRENCY_KEY_PATTERN = re.compile(
    r"^(price|total|amount|cost|revenue|balance)$|_(price|total|amount|cost)$",
    re.IGNORECASE,
)
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")

DATE_FORMATS = {
    "MM/DD/YYYY": "%m/%d/%Y",
    "DD/MM/YYYY": "%d/%m/%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
}
TIME_FORMATS = {"12h": "%I:%M %p", "24h": "%H:%M"}
SEPARATORS = {
    "comma": (",", "."),
    "dot": (".", ","),
    "space": (" ", ","),
}


@dataclass(frozen=True)
class Cell:
    key: str
    text: str
    kind: str = "text"
    href: str | None = None
    raw: Any = None

    @property
    def is_empty(self) -> bool:
        return self.kind == "empty"


def is_currency_field(descriptor: FieldDescriptor) -> bool:
    if descriptor.value_type != ValueType.number:
        return False
    if descriptor.currency is not None:
        return descriptor.currency
    return bool(CURRENCY_KEY_PATTERN.search(descriptor.key))


def _group_digits(integer_part: str, thousands: str) -> str:
    negative = integer_part.startswith("-")
    digits = integer_part.lstrip("-")
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return ("-" if negative else "") + thousands.join(groups)


def format_number(value: Any, display: DisplaySettings, *, places: int | None = None) -> str:
    """Format a number with the configured separators.

    Integers keep no decimals unless ``places`` is given.
    """
    number = coerce_value(value, ValueType.number)
    thousands, decimal_sep = SEPARATORS.get(display.number_format, SEPARATORS["comma"])
    if places is None:
        if isinstance(number, int) or (
            isinstance(number, (float, Decimal)) and number == int(number)
        ):
            places = 0
        else:
            places = display.decimal_places
    text = f"{Decimal(str(number)):.{places}f}"
    integer_part, _, fraction = text.partition(".")
    grouped = _group_digits(integer_part, thousands)
    return f"{grouped}{decimal_sep}{fraction}" if fraction else grouped


def format_currency(value: Any, display: DisplaySettings) -> str:
    amount = format_number(value, display, places=display.decimal_places)
    text = f"{display.currency_symbol}{amount}"
    if amount.startswith("-"):
        text = f"-{display.currency_symbol}{amount[1:]}"
    if display.show_currency_code and display.currency_code:
        text = f"{text} {display.currency_code}"
    return text


def format_date(value: Any, display: DisplaySettings, *, with_time: bool = False) -> str:
    if isinstance(value, datetime):
        moment: date = value
    elif isinstance(value, date):
        moment = value
    else:
        text = str(value).strip()
        if len(text) <= 10:
            moment = coerce_value(text, ValueType.date)
        else:
            try:
                moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                moment = coerce_value(text, ValueType.date)
    pattern = DATE_FORMATS.get(display.date_format, DATE_FORMATS["MM/DD/YYYY"])
    if with_time and isinstance(moment, datetime):
        pattern = f"{pattern} {TIME_FORMATS.get(display.time_format, TIME_FORMATS['24h'])}"
    return moment.strftime(pattern)


def _empty(descriptor: FieldDescriptor, display: DisplaySettings) -> Cell:
    return Cell(key=descriptor.key, text=display.empty_placeholder, kind="empty")


def format_cell(
    descriptor: FieldDescriptor,
    record: Mapping[str, Any],
    display: DisplaySettings,
    *,
    with_time: bool = False,
) -> Cell:
    """Format ``record[descriptor.key]`` for display."""
    value = record.get(descriptor.key)
    key = descriptor.key

    if descriptor.render is not None:
        try:
            return Cell(key=key, text=str(descriptor.render(value, record)), raw=value)
        except Exception:
            logger.warning("Custom renderer for %s failed", key, exc_info=True)
            return _empty(descriptor, display)

    if value is None or value == "":
        return _empty(descriptor, display)

    value_type = descriptor.value_type
    try:
        if value_type == ValueType.boolean:
            flag = coerce_value(value, ValueType.boolean)
            return Cell(
                key=key,
                text=display.yes_label if flag else display.no_label,
                kind="badge-yes" if flag else "badge-no",
                raw=value,
            )
        if value_type == ValueType.date:
            return Cell(key=key, text=format_date(value, display, with_time=with_time), raw=value)
        if value_type == ValueType.enum:
            label = descriptor.option_label(value)
            return Cell(key=key, text=label if label is not None else str(value), kind="badge", raw=value)
        if value_type == ValueType.number:
            if is_currency_field(descriptor):
                return Cell(key=key, text=format_currency(value, display), kind="number", raw=value)
            return Cell(key=key, text=format_number(value, display), kind="number", raw=value)
        if value_type == ValueType.url:
            text = str(value)
            if text.startswith(("http://", "https://")):
                kind = "image" if text.lower().endswith(IMAGE_SUFFIXES) else "link"
                return Cell(key=key, text=text, kind=kind, href=text, raw=value)
            return Cell(key=key, text=text, raw=value)
    except (FilterValidationError, ValueError, ArithmeticError) as exc:
        logger.debug("Falling back to raw value for %s=%r: %s", key, value, exc)
        if value_type == ValueType.date:
            return _empty(descriptor, display)
        return Cell(key=key, text=str(value), raw=value)

    return Cell(key=key, text=str(value), raw=value)


def format_plain(
    descriptor: FieldDescriptor, record: Mapping[str, Any], display: DisplaySettings
) -> str:
    """Formatted text without markup hints, used by CSV export."""
    cell = format_cell(descriptor, record, display, with_time=True)
    return "" if cell.is_empty else cell.text
