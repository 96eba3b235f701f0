"""Numeric coercion for loosely typed request values.

Query specs and request parameters arrive as decoded JSON, so a number may be
an ``int``, a ``float`` or anything else a caller chose to send. These helpers
extract doubles, single precision floats and ints from such values using the
usual widening/narrowing rules:

- any real number widens to a double without complaint;
- narrowing a double to a float or any floating value to an int succeeds but
  records a precision-loss warning;
- ``None``, booleans, strings and containers raise ``CoercionError``.

The keyed ``get_*`` variants look a key up in a mapping first and name that
key in the error message.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
import logging
import math
import numbers
import struct
from typing import Any

from specquery.diagnostics import Diagnostics
from specquery.errors import CoercionError


logger = logging.getLogger(__name__)

FLOAT32_MAX = struct.unpack("<f", b"\xff\xff\x7f\x7f")[0]
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def _type_name(value: Any) -> str:
    return type(value).__name__


def _require_real(value: Any, target: str) -> numbers.Real | Decimal:
    if value is None:
        msg = f"Can't coerce None to {target}."
        raise CoercionError(msg)
    # bool is an int subclass but never a legitimate number in a spec
    if isinstance(value, bool) or not isinstance(value, (numbers.Real, Decimal)):
        msg = f"Can't coerce value of type {_type_name(value)} to {target}."
        raise CoercionError(msg)
    return value


def _is_floating(value: Any) -> bool:
    return not isinstance(value, numbers.Integral)


def _warn(diagnostics: Diagnostics | None, message: str, *args: object) -> None:
    if diagnostics is None:
        logger.warning(message, *args)
    else:
        diagnostics.warning(message, *args, log=logger)


def _widen(number: numbers.Real | Decimal) -> float:
    """Convert to a double; magnitudes beyond the double range become signed infinity."""
    if isinstance(number, Decimal) and number.is_snan():
        return math.nan
    try:
        return float(number)
    except OverflowError:
        return math.inf if number > 0 else -math.inf


def as_double(value: Any) -> float:
    """Return ``value`` as a double precision float."""

    return _widen(_require_real(value, "a double"))


def as_float(value: Any, *, diagnostics: Diagnostics | None = None) -> float:
    """Return ``value`` narrowed to single precision.

    Python has no 32-bit float type, so the result is a Python ``float``
    holding the nearest representable single precision value.
    """

    number = _require_real(value, "a float")
    if _is_floating(number):
        _warn(diagnostics, "Coercing %s to float! Loss of precision.", _type_name(number))
    as_double_value = _widen(number)
    if math.isnan(as_double_value) or math.isinf(as_double_value):
        return as_double_value
    if abs(as_double_value) > FLOAT32_MAX:
        return math.copysign(math.inf, as_double_value)
    return struct.unpack("<f", struct.pack("<f", as_double_value))[0]


def as_int(value: Any, *, diagnostics: Diagnostics | None = None) -> int:
    """Return ``value`` truncated toward zero as a signed 32-bit int.

    NaN becomes 0 and values outside the 32-bit range saturate.
    """

    number = _require_real(value, "an int")
    if _is_floating(number):
        _warn(diagnostics, "Coercing %s to int! Loss of precision.", _type_name(number))
        as_double_value = _widen(number)
        if math.isnan(as_double_value):
            return 0
        if math.isinf(as_double_value):
            return INT32_MAX if as_double_value > 0 else INT32_MIN
        truncated = math.trunc(number)
    else:
        truncated = int(number)
    return max(INT32_MIN, min(INT32_MAX, truncated))


def _lookup(props: Mapping[str, Any], key: str) -> Any:
    value = props.get(key)
    if value is None:
        msg = f"Property map has no value for key {key}"
        raise CoercionError(msg)
    return value


def get_double(props: Mapping[str, Any], key: str) -> float:
    """Return the double stored at ``key`` in ``props``."""

    value = _lookup(props, key)
    try:
        return as_double(value)
    except CoercionError as exc:
        msg = f"Can't get a double for key {key} in property map: {exc.message}"
        raise CoercionError(msg) from exc


def get_float(props: Mapping[str, Any], key: str, *, diagnostics: Diagnostics | None = None) -> float:
    """Return the single precision float stored at ``key`` in ``props``."""

    value = _lookup(props, key)
    try:
        return as_float(value, diagnostics=diagnostics)
    except CoercionError as exc:
        msg = f"Can't get a float for key {key} in property map: {exc.message}"
        raise CoercionError(msg) from exc


def get_int(props: Mapping[str, Any], key: str, *, diagnostics: Diagnostics | None = None) -> int:
    """Return the int stored at ``key`` in ``props``."""

    value = _lookup(props, key)
    try:
        return as_int(value, diagnostics=diagnostics)
    except CoercionError as exc:
        msg = f"Can't get an int for key {key} in property map: {exc.message}"
        raise CoercionError(msg) from exc
