"""
Codec between runtime records and store payloads.

This is the only module that turns ``Memento``/``Token``/``LatLng`` into JSON
text and back. The ledger never serializes to restore its own state; it only
receives already-decoded records through ``CacheLedger.restore``.

Decoding is per record: one corrupt entry raises for that entry alone, and the
``decode_*_list`` helpers skip it (with a logged warning) so the rest of a
save still loads.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from .environment import CellIndex, LatLng
from .ledger import Memento
from .logging_utils import log_error
from .schemas import MementoRecord, TokenRecord
from .tokens import Token


# =============================
# Module-level Exceptions
# =============================

class MalformedMementoError(Exception):
    """Raised when a stored memento is missing fields or holds non-numeric values."""

    def __init__(self, record: Any, reason: str) -> None:
        self.record = record
        self.reason = reason
        super().__init__(f"Malformed cache memento {record!r}: {reason}")


class MalformedTokenError(Exception):
    """Raised when a stored coin record cannot be decoded."""

    def __init__(self, record: Any, reason: str) -> None:
        self.record = record
        self.reason = reason
        super().__init__(f"Malformed coin record {record!r}: {reason}")


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "record"
    return f"{location}: {error.get('msg', 'invalid')}"


def _parse_record(raw: Any) -> Any:
    """Accept either a mapping or a JSON string holding one.

    The browser version stored every memento as a JSON string inside the list.
    """
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    return raw


def _validate(model: type[BaseModel], raw: Any) -> Tuple[Optional[BaseModel], Optional[str]]:
    try:
        payload = _parse_record(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return None, f"not valid JSON: {exc}"
    if not isinstance(payload, dict):
        return None, f"expected an object, got {type(payload).__name__}"
    try:
        return model.model_validate(payload), None
    except ValidationError as exc:
        return None, _first_error(exc)


# ============================================================================
# Mementos
# ============================================================================

def encode_memento(memento: Memento) -> dict:
    record = MementoRecord(
        row=memento.cell.row,
        col=memento.cell.col,
        token_count=memento.token_count,
    )
    return record.model_dump(by_alias=True)


def decode_memento(raw: Any, index: CellIndex) -> Memento:
    """Decode one stored memento into a runtime ``Memento`` with a canonical cell.

    Raises:
        MalformedMementoError: If any of i/j/numCoins is missing or not numeric
    """
    record, reason = _validate(MementoRecord, raw)
    if record is None:
        raise MalformedMementoError(raw, reason or "invalid")
    assert isinstance(record, MementoRecord)
    return Memento(cell=index.cell(record.row, record.col), token_count=record.token_count)


def decode_memento_list(raw_items: Any, index: CellIndex) -> Tuple[List[Memento], int]:
    """Decode every usable memento; returns ``(mementos, skipped_count)``.

    When two records name the same cell the later one wins, matching the
    overwrite-in-place rule of the archive.
    """
    if not isinstance(raw_items, list):
        log_error(f"[Codec] Expected a list of cache mementos, got {type(raw_items).__name__}")
        return [], 0

    by_cell = {}
    skipped = 0
    for raw in raw_items:
        try:
            memento = decode_memento(raw, index)
        except MalformedMementoError as exc:
            skipped += 1
            log_error(f"[Codec] Skipping cache memento: {exc.reason}")
            continue
        by_cell[memento.cell] = memento
    return list(by_cell.values()), skipped


# ============================================================================
# Tokens
# ============================================================================

def encode_token(token: Token) -> dict:
    location = token.location
    record = TokenRecord(
        row=token.origin.row,
        col=token.origin.col,
        serial=token.serial,
        current_row=location.row if location is not None else None,
        current_col=location.col if location is not None else None,
    )
    return record.model_dump(by_alias=True)


def decode_token(raw: Any, index: CellIndex) -> Token:
    """Decode one stored coin.

    Raises:
        MalformedTokenError: If the record is missing identity fields
    """
    record, reason = _validate(TokenRecord, raw)
    if record is None:
        raise MalformedTokenError(raw, reason or "invalid")
    assert isinstance(record, TokenRecord)
    location = None
    if not record.in_inventory:
        location = index.cell(record.current_row, record.current_col)
    return Token(
        origin=index.cell(record.row, record.col),
        serial=record.serial,
        location=location,
    )


def decode_token_list(raw_items: Any, index: CellIndex) -> Tuple[List[Token], int]:
    """Decode every usable coin record; returns ``(tokens, skipped_count)``."""
    if not isinstance(raw_items, list):
        log_error(f"[Codec] Expected a list of coin records, got {type(raw_items).__name__}")
        return [], 0

    tokens: List[Token] = []
    skipped = 0
    for raw in raw_items:
        try:
            tokens.append(decode_token(raw, index))
        except MalformedTokenError as exc:
            skipped += 1
            log_error(f"[Codec] Skipping coin record: {exc.reason}")
    return tokens, skipped


# ============================================================================
# Positions
# ============================================================================

def encode_position(point: LatLng) -> dict:
    return point.model_dump(mode="json")


def decode_position(raw: Any) -> Optional[LatLng]:
    """Decode a stored ``{lat, lng}``; returns None (and logs) when unusable."""
    position, reason = _validate(LatLng, raw)
    if position is None:
        log_error(f"[Codec] Ignoring stored player location: {reason}")
        return None
    assert isinstance(position, LatLng)
    return position


def decode_position_list(raw_items: Any) -> List[LatLng]:
    if not isinstance(raw_items, list):
        return []
    points: List[LatLng] = []
    for raw in raw_items:
        point = decode_position(raw)
        if point is not None:
            points.append(point)
    return points


# ============================================================================
# Payload text
# ============================================================================

def dumps(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"))


def loads(text: Optional[str]) -> Any:
    """Parse store text; returns None for a missing key or unparseable value."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        log_error(f"[Codec] Stored value is not valid JSON: {exc.msg}")
        return None
