"""
Legacy MRN breakdown codec.

Older movement records carry their allocation as a JSON array on the row:

    [{"mrn": "BA23061712345678X", "quantity": 120.5, "date_added": "2024-03-01T08:00:00Z"}, ...]

Some exports use ``customs_declaration_number`` / ``quantity_liters`` for the
same fields.  This module turns that blob into BreakdownLine values on
ingestion, and renders lines back into the same shape for consumers that
still read it.  Quantities are emitted as decimal strings so no litre value
passes through float.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

import json
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

from fuel_kernel.db.types import to_liters
from fuel_kernel.domain.values import BreakdownLine
from fuel_kernel.exceptions import LegacyBreakdownFormatError

_MRN_KEYS = ("mrn", "customs_declaration_number")
_QUANTITY_KEYS = ("quantity", "quantity_liters")


def _first(entry: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in entry and entry[key] is not None:
            return entry[key]
    return None


def load_legacy_entries(blob: str | bytes | list) -> list[dict[str, Any]]:
    """Decode the blob into a list of raw entry dicts."""
    if isinstance(blob, (str, bytes)):
        try:
            data = json.loads(blob, parse_float=Decimal)
        except json.JSONDecodeError as exc:
            raise LegacyBreakdownFormatError(f"invalid JSON: {exc.msg}") from exc
    else:
        data = blob
    if not isinstance(data, list):
        raise LegacyBreakdownFormatError("expected a JSON array")
    return data


def parse_legacy_breakdown(blob: str | bytes | list) -> tuple[BreakdownLine, ...]:
    """
    Parse a legacy breakdown into lines, in the stored order.

    Raises:
        LegacyBreakdownFormatError: On malformed JSON, a missing MRN, or a
            missing, non-numeric or non-positive quantity.
    """
    lines: list[BreakdownLine] = []
    for index, entry in enumerate(load_legacy_entries(blob)):
        if not isinstance(entry, dict):
            raise LegacyBreakdownFormatError("entry is not an object", index)
        mrn = _first(entry, _MRN_KEYS)
        if not isinstance(mrn, str) or not mrn.strip():
            raise LegacyBreakdownFormatError("missing MRN", index)
        raw_quantity = _first(entry, _QUANTITY_KEYS)
        if raw_quantity is None or isinstance(raw_quantity, bool):
            raise LegacyBreakdownFormatError("missing quantity", index)
        try:
            quantity = to_liters(str(raw_quantity))
        except (ValueError, InvalidOperation) as exc:
            raise LegacyBreakdownFormatError(f"bad quantity {raw_quantity!r}", index) from exc
        if quantity <= 0:
            raise LegacyBreakdownFormatError(f"non-positive quantity {quantity}", index)
        lines.append(BreakdownLine(mrn=mrn.strip(), quantity=quantity))
    return tuple(lines)


def dump_legacy_breakdown(lines: Iterable[BreakdownLine]) -> str:
    """Render lines in the legacy JSON shape."""
    return json.dumps(
        [{"mrn": line.mrn, "quantity": str(line.quantity)} for line in lines]
    )
