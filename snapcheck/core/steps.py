"""
Ordered list of step names with a movable cursor, used by steps (batch) mode.
"""

from typing import Iterable, List, Optional


class StepCursor:
    """
    Ordered, mutable list of step labels with a current index.

    The index is -1 exactly when there are no steps; otherwise it always
    points at a valid step. Accessors on an empty cursor return None.
    """

    def __init__(self) -> None:
        self._steps: List[str] = []
        self._current_index = -1

    @classmethod
    def from_string(cls, text: str) -> "StepCursor":
        """Build a cursor from newline separated step names."""
        cursor = cls()
        cursor.set_steps(text.split("\n"))
        return cursor

    def are_steps_available(self) -> bool:
        return len(self._steps) > 0

    def reset(self) -> None:
        self._steps = []
        self._current_index = -1

    def set_steps(self, raw_steps: Optional[Iterable[str]]) -> None:
        """
        Replace the step list.

        Entries are trimmed and blank ones dropped. Anything that is not a
        non-empty list or tuple resets the cursor.
        """
        if not isinstance(raw_steps, (list, tuple)) or not raw_steps:
            self.reset()
            return

        self._steps = [step.strip() for step in raw_steps if step.strip()]
        self._current_index = 0 if self._steps else -1

    def steps(self) -> List[str]:
        return list(self._steps)

    def count(self) -> int:
        return len(self._steps)

    def current_index(self) -> int:
        return self._current_index

    def current(self) -> Optional[str]:
        if not self.are_steps_available():
            return None
        return self._steps[self._current_index]

    def move_next(self) -> Optional[str]:
        """Advance one step; stays on the last step instead of wrapping."""
        if not self.are_steps_available():
            return None
        if self._current_index < len(self._steps) - 1:
            self._current_index += 1
        return self.current()

    def move_prev(self) -> Optional[str]:
        """Go back one step; stays on the first step instead of wrapping."""
        if not self.are_steps_available():
            return None
        if self._current_index > 0:
            self._current_index -= 1
        return self.current()

    def move_to(self, index: int) -> Optional[str]:
        """Jump to a step; out-of-range indexes leave the cursor untouched."""
        if self.are_steps_available() and 0 <= index < len(self._steps):
            self._current_index = index
            return self._steps[index]
        return None

    def __len__(self) -> int:
        return len(self._steps)
