"""
Execution Context - mutable state for one recipe run.

Created fresh at the start of every execute() call and discarded at the
end; nothing here is persisted.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set

from recipe_agent.recipe.element_ref import ElementRef, IndexedElement


@dataclass
class ExtractedItem:
    """
    One saved item.

    Attributes:
        id: Item id from the ITEM_ID rule
        content: Extracted details text
        extracted_at: Unix timestamp of the SAVE
        label: The SAVE command's `as` value
    """
    id: str
    content: str
    extracted_at: float = field(default_factory=time.time)
    label: str = "item"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CurrentItem:
    """The list item the interpreter is working on."""
    id: str
    index: int
    ref: IndexedElement
    text: str = ""
    href: Optional[str] = None


@dataclass
class ExecutionStats:
    """Counters for one run."""
    commands_executed: int = 0
    items_processed: int = 0
    scrolls_performed: int = 0
    binding_fixes: int = 0
    duration_ms: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExecutionContext:
    """
    Per-run interpreter state.

    processed_ids only grows within a run and collected is append-only.
    should_stop ends the run at the next command or loop boundary;
    should_continue ends the current FOR_EACH item's body.
    """
    processed_ids: Set[str] = field(default_factory=set)
    collected: List[ExtractedItem] = field(default_factory=list)

    focus: Optional[ElementRef] = None
    current_item: Optional[CurrentItem] = None
    current_index: int = -1
    extracted_content: Optional[str] = None

    checkpoint_item_count: int = 0
    no_new_items_count: int = 0

    should_stop: bool = False
    should_continue: bool = False

    stats: ExecutionStats = field(default_factory=ExecutionStats)
    started_at: float = field(default_factory=time.time)

    def set_current_item(self, item: CurrentItem) -> None:
        """Make item current and focused, forgetting the previous item's content."""
        self.current_item = item
        self.current_index = item.index
        self.focus = item.ref
        self.extracted_content = None

    def is_processed(self, item_id: str) -> bool:
        return item_id in self.processed_ids

    def elapsed_ms(self) -> float:
        return (time.time() - self.started_at) * 1000

    def to_summary(self) -> Dict[str, Any]:
        """Short, loggable view of the run."""
        return {
            "collected": len(self.collected),
            "processed": len(self.processed_ids),
            "current_item": self.current_item.id if self.current_item else None,
            "checkpoint_item_count": self.checkpoint_item_count,
            "should_stop": self.should_stop,
            "stats": self.stats.to_dict(),
        }
