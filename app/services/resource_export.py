"""CSV export of the filtered and sorted rows of a resource table."""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence

from app.schemas.display_settings import DisplaySettings
from app.services.cell_formatting import format_plain
from app.services.resource_config import FieldDescriptor, Record, ResourceConfig


def export_fields(config: ResourceConfig) -> list[FieldDescriptor]:
    """Table columns, with the id column first when it is not already shown."""
    fields = config.table_fields
    id_descriptor = config.get_field(config.id_field)
    if id_descriptor is None or id_descriptor in fields:
        return fields
    return [id_descriptor, *fields]


def export_filename(config: ResourceConfig) -> str:
    return f"{config.key}_export.csv"


def render_resource_csv(
    config: ResourceConfig, records: Sequence[Record], display: DisplaySettings
) -> str:
    fields = export_fields(config)
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([descriptor.label for descriptor in fields])
    for record in records:
        writer.writerow([format_plain(descriptor, record, display) for descriptor in fields])
    return buffer.getvalue()
