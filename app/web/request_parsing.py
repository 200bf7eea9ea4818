"""Async request parsing dependencies for route handlers."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request
from starlette.datastructures import UploadFile


async def parse_form_data(request: Request) -> dict[str, Any]:
    """Return submitted form fields as a plain dict.

    Repeated keys keep their last value; uploads are ignored.
    """
    form = await request.form()
    values: dict[str, Any] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            continue
        values[key] = value
    return values


async def parse_json_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="JSON object payload is required")
    return payload


async def parse_form_list(request: Request, key: str) -> list[str]:
    """Return every submitted value for a repeated form field, in order."""
    form = await request.form()
    return [value for value in form.getlist(key) if isinstance(value, str) and value]
