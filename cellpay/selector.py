"""Greedy cell selection in arrival order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Type

from .model import Cell

logger = logging.getLogger(__name__)


class InsufficientFunds(RuntimeError):
    """Raised when candidate cells run out before the threshold is exceeded."""

    def __init__(self, required: int, available: int, unit: str = "shannons") -> None:
        super().__init__(
            f"Insufficient funds: needed more than {required} {unit}, available {available} {unit}"
        )
        self.required = required
        self.available = available
        self.unit = unit


class InsufficientToken(InsufficientFunds):
    """Token flavour of :class:`InsufficientFunds`."""

    def __init__(self, required: int, available: int, unit: str = "token units") -> None:
        super().__init__(required, available, unit)


class NoMatchingCell(RuntimeError):
    """Raised when a required single cell cannot be found."""


@dataclass
class Selection:
    cells: List[Cell]
    total: int


class CellSelector:
    """Accumulate candidate cells until their total strictly exceeds a threshold.

    Candidates are pulled one at a time, so a lazy (even unbounded) source is
    only consumed as far as needed. Ordering is never changed: the result is
    the shortest prefix of *candidates* whose measured total is greater than
    the threshold.
    """

    def __init__(
        self,
        measure: Callable[[Cell], int],
        *,
        error_cls: Type[InsufficientFunds] = InsufficientFunds,
        unit: str = "shannons",
    ) -> None:
        self.measure = measure
        self.error_cls = error_cls
        self.unit = unit

    def select(self, candidates: Iterable[Cell], threshold: int) -> Selection:
        selected: List[Cell] = []
        total = 0
        for cell in candidates:
            selected.append(cell)
            total += self.measure(cell)
            if total > threshold:
                logger.debug(
                    "Selected %d cells totaling %d %s (threshold %d)",
                    len(selected),
                    total,
                    self.unit,
                    threshold,
                )
                return Selection(cells=selected, total=total)

        logger.warning(
            "Insufficient %s: needed more than %d, available %d across %d cells",
            self.unit,
            threshold,
            total,
            len(selected),
        )
        raise self.error_cls(threshold, total, self.unit)


capacity_selector = CellSelector(lambda cell: cell.capacity)
token_selector = CellSelector(
    lambda cell: cell.token_amount, error_cls=InsufficientToken, unit="token units"
)


def select_capacity_cells(candidates: Iterable[Cell], threshold: int) -> Selection:
    return capacity_selector.select(candidates, threshold)


def select_token_cells(candidates: Iterable[Cell], threshold: int) -> Selection:
    return token_selector.select(candidates, threshold)


def first_cell(candidates: Iterable[Cell], description: str) -> Cell:
    """Return the first candidate or raise :class:`NoMatchingCell`."""

    for cell in candidates:
        return cell
    raise NoMatchingCell(f"No {description} found")
