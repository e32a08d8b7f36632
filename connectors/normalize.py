"""Shaping API responses into output records."""

import base64
import binascii
import logging
import mimetypes
from collections.abc import Awaitable, Callable
from pathlib import PurePosixPath
from typing import Any

from .errors import DataShapeError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


class Records(list):
    """Output records already shaped by a handler (``{"json": ..., "binary": ...}``)."""


def to_records(data: Any, index: int | None = None) -> list[dict[str, Any]]:
    """Wrap a response (object or list of objects) into output records."""
    if data is None:
        return []
    entries = data if isinstance(data, list) else [data]
    records = []
    for entry in entries:
        record = {"json": entry if isinstance(entry, dict) else {"value": entry}}
        if index is not None:
            record["pairedItem"] = index
        records.append(record)
    return records


def simplify_document(document: dict[str, Any]) -> dict[str, Any]:
    """Flatten an Elasticsearch document or hit into ``{"_id": ..., **_source}``."""
    return {"_id": document.get("_id"), **(document.get("_source") or {})}


def prepare_binary(content: bytes, file_name: str | None = None, mime_type: str | None = None) -> dict[str, Any]:
    """Encode downloaded bytes as a binary property."""
    if not mime_type and file_name:
        mime_type = mimetypes.guess_type(file_name)[0]
    binary: dict[str, Any] = {
        "data": base64.b64encode(content).decode(),
        "mimeType": mime_type or DEFAULT_MIME_TYPE,
        "fileSize": len(content),
    }
    if file_name:
        binary["fileName"] = file_name
        extension = PurePosixPath(file_name).suffix.lstrip(".")
        if extension:
            binary["fileExtension"] = extension
    return binary


def read_binary(binary: dict[str, Any], property_name: str) -> tuple[bytes, dict[str, Any]]:
    """Return the decoded bytes and metadata of an input item's binary property."""
    if not binary:
        raise ValidationError("No binary data exists on item!")
    entry = binary.get(property_name)
    if entry is None:
        raise ValidationError(f'No binary data property "{property_name}" exists on item!')
    try:
        content = base64.b64decode(entry.get("data", ""), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f'Binary data property "{property_name}" is not valid base64: {e}')
    return content, entry


async def attach_binary_content(
    records: list[dict[str, Any]],
    fetch: Callable[[str], Awaitable[bytes]],
    property_name: str,
    *,
    source_key: str = "content",
    continue_on_fail: bool = True,
) -> list[dict[str, Any]]:
    """Download each record's ``source_key`` reference and attach it under ``property_name``.

    A record without the reference gets an ``error`` key in its ``json`` and its siblings are
    still processed; with ``continue_on_fail`` off the error propagates instead.
    """
    for record in records:
        data = record["json"]
        reference = data.get(source_key)
        if not reference:
            error = DataShapeError(f"Item has no '{source_key}' field to download from")
            if not continue_on_fail:
                raise error
            logger.warning("Skipping download for record %s: %s", data.get("id"), error)
            data["error"] = str(error)
            continue
        content = await fetch(reference)
        record.setdefault("binary", {})[property_name] = prepare_binary(
            content, data.get("filename"), data.get("mimeType")
        )
    return records


def response_field(response: Any, key: str) -> Any:
    """Return ``response[key]``, raising :class:`DataShapeError` when it is absent."""
    if not isinstance(response, dict) or key not in response:
        raise DataShapeError(f"Response has no '{key}' field")
    return response[key]
