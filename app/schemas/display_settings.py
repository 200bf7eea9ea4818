from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DateFormat = Literal["MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD"]
TimeFormat = Literal["12h", "24h"]
NumberFormat = Literal["comma", "dot", "space"]
TableDensity = Literal["compact", "comfortable", "spacious"]


class DisplaySettings(BaseModel):
    """Display preferences consulted when formatting table cells."""

    model_config = ConfigDict(frozen=True)

    date_format: DateFormat = "MM/DD/YYYY"
    time_format: TimeFormat = "24h"
    number_format: NumberFormat = "comma"
    currency_symbol: str = Field(default="$", max_length=8)
    currency_code: str = Field(default="USD", max_length=8)
    show_currency_code: bool = False
    decimal_places: int = Field(default=2, ge=0, le=6)
    table_density: TableDensity = "comfortable"
    yes_label: str = "Yes"
    no_label: str = "No"
    empty_placeholder: str = "-"
