"""
History entry models — append-only audit of selection-changing actions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from mbs_selector.models.selection import SelectionSnapshot
from mbs_selector.taxonomy.selection_taxonomy import HistoryAction


class HistoryEntryDraft(BaseModel):
    """An action about to be recorded; the store assigns id and timestamp.

    Attributes:
        action: What happened.
        code: The code acted on; ``None`` for clear and bulk actions.
        selection_state: Codes and total fee *after* the action.
        detail: Optional summary, e.g. ``"tier=high, added=3"``.
    """

    model_config = ConfigDict(frozen=True)

    action: HistoryAction
    code: Optional[str] = None
    selection_state: SelectionSnapshot
    detail: Optional[str] = None


class HistoryEntry(HistoryEntryDraft):
    """A recorded history entry."""

    id: str
    timestamp: datetime
