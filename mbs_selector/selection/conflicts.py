"""
Pure conflict detection over a recommendation index.

A ``ConflictRule`` owned by code ``X`` involves the set
``{X} | rule.conflicting_codes``.  A rule is *active* for a pool of codes
when every involved code is in the pool.  Rules with fewer than two
involved codes can never be active.

Rule data from the backend is not guaranteed to be symmetric (``36`` may
list ``44`` without ``44`` listing ``36``), so ``detect_conflicts`` scans
both the candidate's own rules and the rules of every selected code that
name the candidate.  Rules that involve the same codes with the same reason
and severity are reported once, whichever side they were found on.

Every function here is a pure function of its arguments; the selection
engine, the optimisation advisor and the comparison module all share them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from mbs_selector.models.recommendation import ConflictRule, Recommendation
from mbs_selector.taxonomy.selection_taxonomy import ConflictReason, ConflictSeverity

RuleKey = tuple[frozenset[str], ConflictReason, ConflictSeverity]


@dataclass(frozen=True)
class ActiveRule:
    """A conflict rule that is active for some pool of codes.

    Attributes:
        owner: Code whose record carries the rule.
        rule: The rule itself.
        involved: ``{owner} | rule.conflicting_codes``.
    """

    owner: str
    rule: ConflictRule
    involved: frozenset[str]

    @property
    def is_blocking(self) -> bool:
        return self.rule.is_blocking


@dataclass
class DetectedConflicts:
    """Rules that would become active if ``code`` joined the selection."""

    code: str
    blocking: list[ConflictRule] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    blocking_codes: list[str] = field(default_factory=list)

    @property
    def suggestions(self) -> list[str]:
        if not self.blocking_codes:
            return []
        return [f"Deselect conflicting codes: {', '.join(self.blocking_codes)}"]

    @property
    def is_empty(self) -> bool:
        return not self.blocking and not self.warnings


def involved_codes(owner: str, rule: ConflictRule) -> frozenset[str]:
    """Return every code a rule involves, including its owner."""
    return frozenset(rule.conflicting_codes) | {owner}


def rule_key(owner: str, rule: ConflictRule) -> RuleKey:
    """Identity used to collapse duplicate rules found on both sides."""
    return involved_codes(owner, rule), rule.reason, rule.severity


def _rules_touching(
    code: str,
    selected: Iterable[str],
    index: dict[str, Recommendation],
) -> Iterator[tuple[str, ConflictRule]]:
    """Yield ``(owner, rule)`` for the code's own rules, then reverse references."""
    own = index.get(code)
    if own is not None:
        for rule in own.conflict_rules:
            yield code, rule

    for other in selected:
        if other == code:
            continue
        rec = index.get(other)
        if rec is None:
            continue
        for rule in rec.conflict_rules:
            if code in rule.conflicting_codes:
                yield other, rule


def detect_conflicts(
    code: str,
    selected: Iterable[str],
    index: dict[str, Recommendation],
) -> DetectedConflicts:
    """Find the rules that adding ``code`` to ``selected`` would activate.

    Args:
        code: Candidate code.
        selected: Codes currently selected (order is used for suggestions).
        index: ``code -> Recommendation`` lookup for the current set.

    Returns:
        ``DetectedConflicts`` with deduplicated blocking rules, deduplicated
        warning messages, and the selected codes named by blocking rules.
    """
    selected = list(selected)
    pool = set(selected) | {code}
    result = DetectedConflicts(code=code)
    seen: set[RuleKey] = set()
    blocked_by: set[str] = set()

    for owner, rule in _rules_touching(code, selected, index):
        involved = involved_codes(owner, rule)
        if len(involved) < 2 or not involved <= pool:
            continue
        key = rule_key(owner, rule)
        if key in seen:
            continue
        seen.add(key)

        if rule.is_blocking:
            result.blocking.append(rule)
            blocked_by |= involved
        elif rule.message not in result.warnings:
            result.warnings.append(rule.message)

    result.blocking_codes = [c for c in selected if c in blocked_by and c != code]
    return result


def active_rules(
    selected: Iterable[str],
    index: dict[str, Recommendation],
) -> list[ActiveRule]:
    """Return every distinct rule active among ``selected``, in selection order."""
    selected = list(selected)
    pool = set(selected)
    seen: set[RuleKey] = set()
    active: list[ActiveRule] = []

    for owner in selected:
        rec = index.get(owner)
        if rec is None:
            continue
        for rule in rec.conflict_rules:
            involved = involved_codes(owner, rule)
            if len(involved) < 2 or not involved <= pool:
                continue
            key = rule_key(owner, rule)
            if key in seen:
                continue
            seen.add(key)
            active.append(ActiveRule(owner=owner, rule=rule, involved=involved))

    return active


def conflicts_by_code(
    selected: Iterable[str],
    index: dict[str, Recommendation],
) -> dict[str, list[ConflictRule]]:
    """Map each selected code to the active rules it participates in.

    Codes with no active rules are omitted.  Keys follow selection order.
    """
    selected = list(selected)
    mapping: dict[str, list[ConflictRule]] = {}
    rules = active_rules(selected, index)
    for code in selected:
        touching = [a.rule for a in rules if code in a.involved]
        if touching:
            mapping[code] = touching
    return mapping


def warning_messages(rules: Iterable[ActiveRule]) -> list[str]:
    """Deduplicated messages of the warning-severity rules, in order."""
    messages: list[str] = []
    for active in rules:
        if not active.is_blocking and active.rule.message not in messages:
            messages.append(active.rule.message)
    return messages


def sum_fees(codes: Iterable[str], index: dict[str, Recommendation]) -> float:
    """Sum of fees over ``codes`` resolved against ``index``, rounded to cents.

    Codes missing from the index contribute nothing.
    """
    return round(sum(index[c].fee_amount for c in codes if c in index), 2)
