"""CellStore: the shared cell map behind a single lock."""

from __future__ import annotations

import threading
from typing import Iterable

from rsheet.contracts.common import CellValue


class CellStore:
    """Maps cell identifiers to values.

    Every access goes through :meth:`get`, :meth:`set` or :meth:`snapshot`,
    each of which holds the lock for one lookup or insert only. Callers must
    never evaluate an expression while holding it.
    """

    def __init__(self) -> None:
        self._cells: dict[str, CellValue] = {}
        self._lock = threading.Lock()

    def get(self, cell: str) -> CellValue:
        """Return the current value of *cell*, or None if it was never set."""
        with self._lock:
            return self._cells.get(cell)

    def set(self, cell: str, value: CellValue) -> None:
        with self._lock:
            self._cells[cell] = value

    def snapshot(self, cells: Iterable[str]) -> dict[str, CellValue]:
        """Read the present cells among *cells* under one acquisition.

        Cells that were never set are left out of the result.
        """
        with self._lock:
            return {c: self._cells[c] for c in cells if c in self._cells}

    def __len__(self) -> int:
        with self._lock:
            return len(self._cells)
