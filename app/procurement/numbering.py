"""Sequential, per-year document numbers (``REQ-2025-0001``, ``PO-2025-00001``).

Numbers are proposed from the highest sequence already stored for the
prefix/year and then inserted; uniqueness is enforced by the database. A
duplicate on insert means another process won the race, so the lookup and
insert are repeated as one unit, a bounded number of times.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

from app.errors import ConflictError
from app.observability import observe_numbering_retry


logger = logging.getLogger("app.procurement.numbering")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class NumberingScheme:
    prefix: str
    width: int

    def like_pattern(self, year: int) -> str:
        return f"{self.prefix}-{int(year)}-%"

    def format(self, year: int, sequence: int) -> str:
        return f"{self.prefix}-{int(year)}-{int(sequence):0{self.width}d}"

    def parse(self, number: str | None, year: int | None = None) -> int | None:
        raw = str(number or "").strip()
        match = re.fullmatch(rf"{re.escape(self.prefix)}-(\d{{4}})-(\d{{{self.width},}})", raw)
        if not match:
            return None
        if year is not None and int(match.group(1)) != int(year):
            return None
        return int(match.group(2))

    def is_valid(self, number: str | None) -> bool:
        return self.parse(number) is not None


REQUISITION_NUMBERS = NumberingScheme(prefix="REQ", width=4)
PURCHASE_ORDER_NUMBERS = NumberingScheme(prefix="PO", width=5)


def max_sequence(scheme: NumberingScheme, year: int, numbers: Iterable[str | None]) -> int | None:
    sequences = [seq for seq in (scheme.parse(number, year) for number in numbers) if seq is not None]
    return max(sequences) if sequences else None


def next_number(scheme: NumberingScheme, year: int, current_max: int | None) -> str:
    sequence = int(current_max) + 1 if current_max else 1
    return scheme.format(year, sequence)


@dataclass(frozen=True)
class InsertResult(Generic[T]):
    inserted: bool
    value: Any = None

    @classmethod
    def ok(cls, value: T) -> "InsertResult[T]":
        return cls(inserted=True, value=value)

    @classmethod
    def duplicate_number(cls) -> "InsertResult[T]":
        return cls(inserted=False)


@dataclass(frozen=True)
class Allocation(Generic[T]):
    number: str
    attempts: int
    value: T


def allocate_with_retry(
    scheme: NumberingScheme,
    year: int,
    *,
    lookup_max_fn: Callable[[NumberingScheme, int], int | None],
    insert_fn: Callable[[str], InsertResult[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Allocation[T]:
    attempts = max(1, int(max_attempts or DEFAULT_MAX_ATTEMPTS))
    for attempt in range(1, attempts + 1):
        number = next_number(scheme, year, lookup_max_fn(scheme, year))
        result = insert_fn(number)
        if result.inserted:
            return Allocation(number=number, attempts=attempt, value=result.value)
        logger.warning(
            "numbering_conflict_retry",
            extra={"prefix": scheme.prefix, "year": int(year), "number": number, "attempt": attempt},
        )
        observe_numbering_retry(scheme.prefix)

    raise ConflictError(
        code="numbering_conflict",
        details=f"{scheme.prefix}-{year}: no free number after {attempts} attempts",
        payload={"prefix": scheme.prefix, "year": int(year), "attempts": attempts},
    )
