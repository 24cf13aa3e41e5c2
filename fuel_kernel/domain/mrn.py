"""
MRN -- customs Movement Reference Number rules.

Format: two-letter country code, six digits (year and day), eight
alphanumerics, one alphanumeric check character, e.g. ``BA23061712345678X``.

Two system sentinel families bypass the format check:

    UNTRACKED-INTAKE-<yyyymmddHHMMSS>-<tank>-<seq>   intake without a customs document
    BAL-<yyyy-mm-dd>-<tank>-<seq>                    balancing lot from a correction

``<tank>`` is the first eight hex digits of the owning tank's id, so a
sentinel lot moved into another tank never merges with that tank's own
sentinels.  Balancing MRNs are written by corrections (and carried along by
transfers); intake callers cannot submit them.
"""

import re
from datetime import datetime
from uuid import UUID

from fuel_kernel.exceptions import InvalidMrnFormatError

MRN_PATTERN = re.compile(r"^[A-Z]{2}\d{6}[0-9A-Z]{8}[0-9A-Z]$")

UNTRACKED_PREFIX = "UNTRACKED-INTAKE-"
BALANCING_PREFIX = "BAL-"

UNTRACKED_PATTERN = re.compile(r"^UNTRACKED-INTAKE-\d{14}-[0-9A-F]{8}-\d{4,}$")
BALANCING_PATTERN = re.compile(r"^BAL-\d{4}-\d{2}-\d{2}-[0-9A-F]{8}-\d{4,}$")


def tank_tag(tank_id: UUID | str) -> str:
    return UUID(str(tank_id)).hex[:8].upper()


def is_untracked(mrn: str) -> bool:
    return isinstance(mrn, str) and UNTRACKED_PATTERN.fullmatch(mrn) is not None


def is_balancing(mrn: str) -> bool:
    return isinstance(mrn, str) and BALANCING_PATTERN.fullmatch(mrn) is not None


def is_sentinel(mrn: str) -> bool:
    """True for well-formed system-generated MRNs (untracked intake or balancing)."""
    return is_untracked(mrn) or is_balancing(mrn)


def is_valid_mrn(mrn: str) -> bool:
    if not isinstance(mrn, str) or not mrn:
        return False
    return MRN_PATTERN.fullmatch(mrn) is not None or is_sentinel(mrn)


def validate_mrn(mrn: str, *, allow_balancing: bool = False) -> str:
    """
    Return ``mrn`` unchanged, or raise InvalidMrnFormatError.

    Balancing MRNs pass only with ``allow_balancing``; the correction
    workflow and tank transfers are the only writers that set it.
    """
    if not is_valid_mrn(mrn):
        raise InvalidMrnFormatError(str(mrn))
    if is_balancing(mrn) and not allow_balancing:
        raise InvalidMrnFormatError(
            mrn, reason="balancing MRNs are issued only by corrections"
        )
    return mrn


def untracked_mrn(now: datetime, tank_id: UUID | str, sequence: int) -> str:
    return f"{UNTRACKED_PREFIX}{now:%Y%m%d%H%M%S}-{tank_tag(tank_id)}-{sequence:04d}"


def balancing_mrn(now: datetime, tank_id: UUID | str, sequence: int) -> str:
    return f"{BALANCING_PREFIX}{now:%Y-%m-%d}-{tank_tag(tank_id)}-{sequence:04d}"
