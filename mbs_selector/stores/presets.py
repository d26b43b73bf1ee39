"""
Preset store — named, durable snapshots of a code selection.

Usage::

    store = PresetStore(SqliteKeyValueStore("data/db/mbs_selector.db"))
    preset = store.save(PresetDraft(name="GP standard", selected_codes=engine.selected_codes))
    store.load_into(preset.id, engine)      # replaces the live selection

Every mutation (``save``, ``update``, ``delete``, ``duplicate``) rewrites the
whole list under ``mbs-selection-presets``.  Unknown ids raise
``PresetNotFoundError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional
from uuid import uuid4

from mbs_selector.db.kv_store import KeyValueStore
from mbs_selector.exceptions import PresetNotFoundError
from mbs_selector.models.preset import Preset, PresetDraft
from mbs_selector.stores.base import PersistedListStore
from mbs_selector.taxonomy.selection_taxonomy import HistoryAction
from mbs_selector.utils.time_utils import utcnow

if TYPE_CHECKING:
    from mbs_selector.selection.engine import SelectionEngine

logger = logging.getLogger(__name__)

PRESETS_KEY = "mbs-selection-presets"

_UNSET: Any = object()


def new_preset_id() -> str:
    return f"preset-{uuid4().hex}"


class PresetStore(PersistedListStore[Preset]):
    """Saved presets, in save order.

    Args:
        kv: Backing key-value store.
        key: Storage key (default ``mbs-selection-presets``).
        clock: Returns the current UTC time; injectable for tests.
    """

    record_type = Preset

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = PRESETS_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.clock = clock
        super().__init__(kv, key)
        logger.debug("Loaded %d presets from '%s'.", len(self._records), key)

    @property
    def presets(self) -> list[Preset]:
        return list(self._records)

    def get(self, preset_id: str) -> Preset:
        """Return the preset with ``preset_id``.

        Raises:
            PresetNotFoundError: If no preset has that id.
        """
        return self._records[self._position(preset_id)]

    def _position(self, preset_id: str) -> int:
        for i, preset in enumerate(self._records):
            if preset.id == preset_id:
                return i
        raise PresetNotFoundError(preset_id)

    # ── Mutations ─────────────────────────────────────────────────────────────

    def save(self, draft: PresetDraft) -> Preset:
        """Create a preset from ``draft`` with a fresh id and timestamps."""
        now = self.clock()
        preset = Preset(
            id=new_preset_id(),
            name=draft.name,
            description=draft.description,
            selected_codes=list(draft.selected_codes),
            created_at=now,
            modified_at=now,
        )
        self._records.append(preset)
        self._persist()
        logger.info("Saved preset '%s' (%d codes).", preset.name, len(preset.selected_codes))
        return preset

    def update(
        self,
        preset_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = _UNSET,
        selected_codes: Optional[list[str]] = None,
    ) -> Preset:
        """Apply a partial update and bump ``modified_at``.

        ``created_at`` and ``id`` never change.  Pass ``description=None`` to
        clear the description; omit it to keep the current one.

        Raises:
            PresetNotFoundError: If no preset has that id.
        """
        pos = self._position(preset_id)
        current = self._records[pos]
        updated = Preset(
            id=current.id,
            name=current.name if name is None else name,
            description=current.description if description is _UNSET else description,
            selected_codes=(
                list(current.selected_codes) if selected_codes is None else list(selected_codes)
            ),
            created_at=current.created_at,
            modified_at=self.clock(),
        )
        self._records[pos] = updated
        self._persist()
        return updated

    def delete(self, preset_id: str) -> Preset:
        """Remove and return the preset.

        Raises:
            PresetNotFoundError: If no preset has that id.
        """
        removed = self._records.pop(self._position(preset_id))
        self._persist()
        logger.info("Deleted preset '%s'.", removed.name)
        return removed

    def duplicate(self, preset_id: str, new_name: str) -> Preset:
        """Copy a preset's codes and description under a new id and name."""
        source = self.get(preset_id)
        return self.save(
            PresetDraft(
                name=new_name,
                description=source.description,
                selected_codes=list(source.selected_codes),
            )
        )

    # ── Loading into a selection ──────────────────────────────────────────────

    def load(self, preset_id: str, on_selection_change: Callable[[list[str]], Any]) -> Preset:
        """Hand a copy of the preset's codes to ``on_selection_change``.

        The callback is expected to *replace* the live selection with the
        given codes, not merge them.

        Raises:
            PresetNotFoundError: If no preset has that id.
        """
        preset = self.get(preset_id)
        on_selection_change(list(preset.selected_codes))
        return preset

    def load_into(self, preset_id: str, engine: "SelectionEngine") -> list[str]:
        """Replace ``engine``'s selection with the preset's codes.

        Returns:
            Codes from the preset that could not be selected against the
            engine's current recommendations (unknown, or blocked).
        """
        skipped: list[str] = []

        def _replace(codes: list[str]) -> None:
            skipped.extend(
                engine.replace_selection(
                    codes, HistoryAction.LOAD_PRESET, detail=f"preset={preset_id}"
                )
            )

        self.load(preset_id, _replace)
        return skipped
