"""
History Service - Linear undo/redo over row snapshots.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from services.exceptions import HistoryEmptyError

logger = logging.getLogger(__name__)

Snapshot = List[Dict[str, Any]]


class EditHistory:
    """
    Undo/redo stacks for one table.

    The undo stack is ordered oldest first; the redo stack is ordered
    next-first, so redo() always takes element 0. Pushing a new state
    clears the redo stack.
    """

    def __init__(
        self,
        current: Optional[Snapshot] = None,
        undo_stack: Optional[List[Snapshot]] = None,
        redo_stack: Optional[List[Snapshot]] = None,
        limit: Optional[int] = None
    ):
        self.current: Snapshot = list(current or [])
        self.undo_stack: List[Snapshot] = list(undo_stack or [])
        self.redo_stack: List[Snapshot] = list(redo_stack or [])
        self.limit = limit

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def push(self, next_rows: Snapshot) -> Snapshot:
        """Make next_rows current, keeping the old state for undo."""
        self.undo_stack.append(self.current)
        if self.limit is not None and len(self.undo_stack) > self.limit:
            dropped = len(self.undo_stack) - self.limit
            self.undo_stack = self.undo_stack[dropped:]
            logger.debug(f"History limit {self.limit} reached, dropped {dropped} snapshot(s)")
        self.redo_stack = []
        self.current = copy.deepcopy(next_rows)
        return self.current

    def undo(self) -> Snapshot:
        if not self.undo_stack:
            raise HistoryEmptyError('undo')
        previous = self.undo_stack.pop()
        self.redo_stack.insert(0, self.current)
        self.current = previous
        return self.current

    def redo(self) -> Snapshot:
        if not self.redo_stack:
            raise HistoryEmptyError('redo')
        following = self.redo_stack.pop(0)
        self.undo_stack.append(self.current)
        self.current = following
        return self.current
