"""
Drag-and-drop reordering model for the admin dashboard.

The model holds the working order of a collection while the admin drags
cards around. Nothing is persisted until save() is called with a persist
callable (usually AdminClient.reorder bound to a collection and region).
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Bounding box of the card under the pointer."""
    left: float
    top: float
    width: float
    height: float

    @property
    def middle_x(self) -> float:
        return self.left + self.width / 2

    @property
    def middle_y(self) -> float:
        return self.top + self.height / 2


class SaveInProgressError(RuntimeError):
    """save() was called while an earlier save has not finished."""


class ReorderWidget:
    """
    Working order of one collection in the admin dashboard.

    States: IDLE -> DRAGGING -> IDLE (cancel) or DROPPED (drop).
    DROPPED means the order differs from the last saved one.
    """

    def __init__(self, items: Sequence[dict]):
        self.items: List[dict] = list(items)
        self.state = DragState.IDLE
        self.drag_index: Optional[int] = None
        self.has_unsaved_changes = False
        self.saving = False
        self._order_before_drag: Optional[List[dict]] = None

    @property
    def order(self) -> List[int]:
        return [item["id"] for item in self.items]

    def begin_drag(self, index: int) -> None:
        if self.state is DragState.DRAGGING:
            raise RuntimeError("A drag is already in progress")
        if not 0 <= index < len(self.items):
            raise IndexError(f"No item at position {index}")
        self._order_before_drag = list(self.items)
        self.drag_index = index
        self.state = DragState.DRAGGING

    def hover(self, hover_index: int, pointer: Point, rect: Rect) -> bool:
        """
        Move the dragged card onto hover_index once the pointer has crossed
        the hovered card's midpoint in the direction of travel.

        Returns:
            bool: True if the cards were swapped
        """
        if self.state is not DragState.DRAGGING or self.drag_index is None:
            return False
        drag_index = self.drag_index
        if hover_index == drag_index or not 0 <= hover_index < len(self.items):
            return False

        # Forward moves wait until the pointer is past the middle, backward moves until it is before it
        if drag_index < hover_index and pointer.y < rect.middle_y and pointer.x < rect.middle_x:
            return False
        if drag_index > hover_index and pointer.y > rect.middle_y and pointer.x > rect.middle_x:
            return False

        item = self.items.pop(drag_index)
        self.items.insert(hover_index, item)
        self.drag_index = hover_index
        return True

    def cancel(self) -> None:
        """Abandon the drag and restore the order it started from."""
        if self.state is not DragState.DRAGGING:
            return
        self.items = self._order_before_drag or self.items
        self._end_drag()
        self.state = DragState.DROPPED if self.has_unsaved_changes else DragState.IDLE

    def drop(self) -> List[int]:
        """
        Finish the drag. The full id list is computed from local state;
        nothing is sent to the server.
        """
        if self.state is not DragState.DRAGGING:
            raise RuntimeError("No drag in progress")
        before = [item["id"] for item in self._order_before_drag or []]
        self._end_drag()
        if self.order != before:
            self.has_unsaved_changes = True
        self.state = DragState.DROPPED if self.has_unsaved_changes else DragState.IDLE
        return self.order

    def _end_drag(self) -> None:
        self.drag_index = None
        self._order_before_drag = None

    def save(self, persist: Callable[[List[int]], Sequence[dict]]) -> bool:
        """
        Send the working order to the server and adopt the refreshed list it
        returns.

        Args:
            persist: Callable taking the ordered ids and returning the server's list

        Returns:
            bool: False if there was nothing to save

        Raises:
            SaveInProgressError: An earlier save has not completed
        """
        if self.saving:
            raise SaveInProgressError("A save is already in progress")
        if not self.has_unsaved_changes:
            return False

        self.saving = True
        try:
            refreshed = persist(self.order)
        finally:
            self.saving = False

        self.items = list(refreshed)
        self.has_unsaved_changes = False
        self.state = DragState.IDLE
        logger.info(f"Saved order of {len(self.items)} items")
        return True

    def should_confirm_unload(self) -> bool:
        """Whether leaving the page should ask for confirmation."""
        return self.has_unsaved_changes
