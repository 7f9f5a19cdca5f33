"""
Conflict resolution between candidate rules.

Two orderings exist:

- SPECIFICITY (calculation rules): highest specificity score first.
- PRIORITY (conventions): lowest explicit priority number first.

Both then prefer the larger payout at the reference base amount, and
finally the rule's position in the input collection.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from .calculator import reference_value
from .models import Candidate, Context, REFERENCE_BASE_AMOUNT, ResolutionPolicy, Rule
from .scoring import specificity_score


def infer_policy(rules: Sequence[Rule]) -> Tuple[ResolutionPolicy, bool]:
    """Policy matching the candidate rule shapes; second item is True for mixed shapes."""
    discrete = sum(1 for rule in rules if rule.is_discrete)
    if rules and discrete == 0:
        return ResolutionPolicy.PRIORITY, False
    return ResolutionPolicy.SPECIFICITY, 0 < discrete < len(rules)


def build_candidates(indexed_rules: Sequence[Tuple[int, Rule]], context: Context,
                     policy: ResolutionPolicy,
                     reference_base: Decimal = REFERENCE_BASE_AMOUNT,
                     reference_date: Optional[date] = None,
                     **score_tuning) -> List[Candidate]:
    candidates = []
    for index, rule in indexed_rules:
        score = None
        if policy == ResolutionPolicy.SPECIFICITY:
            score = specificity_score(rule, context, reference_date, **score_tuning)
        candidates.append(Candidate(
            rule=rule,
            index=index,
            reference_value=reference_value(rule, context, reference_base),
            score=score,
        ))
    return candidates


def ordering_key(candidate: Candidate, policy: ResolutionPolicy):
    if policy == ResolutionPolicy.SPECIFICITY:
        primary = -(candidate.score or 0.0)
    else:
        primary = candidate.rule.priority
    return (primary, -candidate.reference_value, candidate.index)


def rank_candidates(candidates: Sequence[Candidate], policy: ResolutionPolicy) -> List[Candidate]:
    """Candidates in decision order; the first one wins."""
    return sorted(candidates, key=lambda c: ordering_key(c, policy))


def resolve(candidates: Sequence[Candidate],
            policy: ResolutionPolicy) -> Tuple[Optional[Candidate], List[Candidate]]:
    """Return the winning candidate and the ranked runner-ups."""
    ranked = rank_candidates(candidates, policy)
    if not ranked:
        return None, []
    return ranked[0], ranked[1:]
