"""
mbs_selector.stores — durable preset and history lists.

Both stores mirror an in-memory list to a ``KeyValueStore`` key and degrade
persistence failures to warnings.

Modules:
  base     — PersistedListStore: JSON load/rewrite, warning capture.
  presets  — PresetStore: save / load / update / delete / duplicate.
  history  — HistoryStore: newest-first log with FIFO capacity bound.
"""
