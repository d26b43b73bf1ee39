"""
mbs_selector.reporting — selection export and terminal formatting.

The selection engine only exposes ``snapshot()``; everything about file
formats and layout lives here.

Modules:
  export     — CSV/JSON writers and the snapshot → flat rows adapter.
  formatters — ASCII tables for Typer CLI commands.
"""
