"""
Module: fuel_kernel.db.types
Responsibility: Annotated type aliases and the quantity helpers shared by
    models, domain, services and selectors.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/ or domain/.

Invariants enforced:
    - No floats anywhere in the fuel kernel.  Every quantity is a Decimal
      with at most QUANTITY_PLACES places, normalized by to_liters().
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import String

from fuel_kernel.db.base import QUANTITY_PLACES, Liters
from fuel_kernel.exceptions import QuantityPrecisionError

# Litre quantity, three decimal places
Quantity = Annotated[Decimal, Liters()]

# Customs movement reference number or system sentinel
MrnCode = Annotated[str, String(64)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for notes
LongText = Annotated[str, String(2000)]

ZERO = Decimal("0.000")
DEFAULT_ROUNDING = ROUND_HALF_UP
LITRE_STEP = Decimal(1).scaleb(-QUANTITY_PLACES)


def to_liters(value: Decimal | int | str) -> Decimal:
    """
    Normalize a quantity to a Decimal with QUANTITY_PLACES places.

    Trailing zeros beyond QUANTITY_PLACES are fine; any other extra digit
    is rejected rather than rounded away.

    Raises:
        TypeError: If value is a float.
        ValueError: If value is not numeric.
        QuantityPrecisionError: If value has a nonzero digit past
            QUANTITY_PLACES.
    """
    if isinstance(value, float):
        raise TypeError("Quantities must be Decimal, int or str, not float")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a numeric quantity: {value!r}") from exc
    if not d.is_finite():
        raise ValueError(f"Not a finite quantity: {value!r}")
    quantized = d.quantize(LITRE_STEP, rounding=DEFAULT_ROUNDING)
    if quantized != d:
        raise QuantityPrecisionError(d, QUANTITY_PLACES)
    return quantized
