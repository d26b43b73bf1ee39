"""Fee additivity and the no-blocking-pair invariant across mixed mutations."""

from __future__ import annotations

from mbs_selector.models.recommendation import Recommendation
from mbs_selector.selection.bulk import BulkOperations
from mbs_selector.selection.engine import SelectionEngine
from mbs_selector.selection.optimiser import OptimisationAdvisor, apply_optimisation
from mbs_selector.taxonomy.selection_taxonomy import (
    ConflictSeverity,
    HistoryAction,
    OptimisationType,
)


def _assert_consistent(engine: SelectionEngine, recommendations: list[Recommendation]) -> None:
    fees = {rec.code: rec.fee_amount for rec in recommendations}
    selected = set(engine.selected_codes)

    assert engine.total_fee == round(sum(fees[c] for c in engine.selected_codes), 2)
    assert engine.selection_summary.total_fee == engine.total_fee
    assert engine.selection_validation.is_valid

    for rec in recommendations:
        for rule in rec.conflict_rules:
            if rule.severity == ConflictSeverity.BLOCKING:
                assert not set(rule.conflicting_codes) <= selected


def test_mixed_mutation_sequence_keeps_fee_and_validity(
    engine: SelectionEngine, recommendations: list[Recommendation]
) -> None:
    bulk = BulkOperations(engine)
    advisor = OptimisationAdvisor(recommendations)

    def check() -> None:
        _assert_consistent(engine, recommendations)

    engine.toggle_code_selection("36")
    check()
    assert engine.select_code("44").can_select is False
    check()
    engine.select_code("721")
    engine.select_code("723")
    check()
    assert engine.selected_codes == ["36", "721", "723"]

    bulk.invert_selection()
    check()
    assert engine.selected_codes == ["44", "177"]
    assert engine.total_fee == 150.60

    assert engine.undo()
    check()
    assert engine.selected_codes == ["36", "721", "723"]
    assert engine.redo()
    check()
    assert engine.selected_codes == ["44", "177"]

    skipped = engine.replace_selection(["36", "44", "723"], HistoryAction.LOAD_PRESET)
    check()
    assert skipped == ["44"]
    assert engine.selected_codes == ["36", "723"]

    [grow] = advisor.suggest(engine.selected_codes, OptimisationType.MAXIMIZE_FEE)
    assert apply_optimisation(grow, engine).fully_applied
    check()
    assert engine.total_fee == 250.70

    engine.toggle_code_selection("36")
    check()
    bulk.select_all()
    check()
    assert engine.selected_codes == ["723", "721", "177", "36"]

    [trim] = advisor.suggest(engine.selected_codes, OptimisationType.MINIMIZE_CONFLICTS)
    apply_optimisation(trim, engine)
    check()
    assert engine.selected_codes == ["721", "177", "36"]

    bulk.clear_all()
    check()
    assert engine.total_fee == 0.0
