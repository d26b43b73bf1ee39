"""
mbs_selector.selection — the code-selection / conflict-resolution core.

Modules
-------
conflicts  : pure rule activation, deduplication and fee summing.
engine     : SelectionEngine — validated, observable, undoable selection.
bulk       : BulkOperations — greedy batch selects, one history entry each.
optimiser  : OptimisationAdvisor + apply_optimisation().
comparison : compare_selections() — pure delta between two selections.
filters    : QuickFilter + apply_quick_filter() for display narrowing.
"""
