"""Conversion of raw receiver values into typed bus states."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.structs import DecimalState, ItemType, OnOffState, PercentState, State, StringState

logger = get_logger(__name__)

_ON_TOKENS = frozenset({"on", "true", "1"})
_OFF_TOKENS = frozenset({"off", "false", "0"})


def _parse_decimal(raw: str) -> Decimal:
    value = Decimal(raw.strip())
    if not value.is_finite():
        msg = f"not a finite number: {raw!r}"
        raise ValueError(msg)
    return value


def _parse_on_off(raw: str) -> bool:
    token = raw.strip().casefold()
    if token in _ON_TOKENS:
        return True
    if token in _OFF_TOKENS:
        return False
    msg = f"not an on/off token: {raw!r}"
    raise ValueError(msg)


def _parse_percent(raw: str) -> Decimal:
    value = _parse_decimal(raw)
    if not Decimal(0) <= value <= Decimal(100):
        msg = f"percentage out of range: {raw!r}"
        raise ValueError(msg)
    return value


def create_state(item_type: ItemType, raw: str) -> State:
    """Coerce ``raw`` into the state type of ``item_type``.

    Never raises: any value that does not parse for its item type is
    returned unchanged as a :class:`StringState`.
    """
    try:
        match item_type:
            case ItemType.NUMBER:
                return DecimalState(_parse_decimal(raw))
            case ItemType.SWITCH:
                return OnOffState(_parse_on_off(raw))
            case ItemType.DIMMER:
                return PercentState(_parse_percent(raw))
            case _:
                return StringState(raw)
    except (ValueError, InvalidOperation, TypeError, AttributeError) as e:
        logger.debug(
            "Couldn't create state of type '%s' for value '%s'",
            item_type,
            raw,
            extra={"reason": str(e)},
        )
        return StringState(raw)
