"""Domain predicates over disclosed attribute values.

Predicates never look at hidden attributes; they are evaluated only over
what a proof discloses. A predicate the disclosed values cannot decide is
reported as not satisfied, with the reason, so a verifier can tell "the
holder does not qualify" apart from "the holder revealed too little".

Age predicates prefer a disclosed ``age``. Without it they fall back on the
boolean threshold flags (``over_18``, ``over_21``, ...) that identity
credentials carry precisely so the exact age can stay hidden.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from sdcred.encoding import canonicalize_value
from sdcred.models import Predicate, PredicateKind

logger = logging.getLogger(__name__)

SOURCE_DISCLOSED = "disclosed_values"
SOURCE_HINT = "prover_hint"


@dataclass
class PredicateEvaluation:
    """Outcome of evaluating one predicate.

    Attributes:
        satisfied: Whether the predicate holds.
        decided: False when the disclosed values were insufficient.
        reason: Human-readable explanation.
        attributes_used: Disclosed attribute names that decided the result.
        source: Where the outcome came from.
    """

    satisfied: bool
    decided: bool = True
    reason: str = ""
    attributes_used: list[str] = field(default_factory=list)
    source: str = SOURCE_DISCLOSED


def _undecided(reason: str) -> PredicateEvaluation:
    return PredicateEvaluation(satisfied=False, decided=False, reason=reason)


def _at_least(disclosed: Mapping[str, str], threshold: int) -> tuple[bool | None, str | None]:
    """Decide ``age >= threshold`` and name the attribute that decided it."""
    if "age" in disclosed:
        try:
            return int(disclosed["age"]) >= threshold, "age"
        except ValueError:
            return None, None
    flag = f"over_{threshold}"
    value = disclosed.get(flag)
    if value == "true":
        return True, flag
    if value == "false":
        return False, flag
    return None, None


def _age_over(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    threshold = int(predicate.params["threshold"])
    result, used = _at_least(disclosed, threshold)
    if result is None:
        return _undecided(f"Neither 'age' nor 'over_{threshold}' was disclosed")
    verb = "is" if result else "is not"
    return PredicateEvaluation(
        satisfied=result,
        reason=f"Holder {verb} at least {threshold}",
        attributes_used=[used],
    )


def _age_under(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    threshold = int(predicate.params["threshold"])
    result, used = _at_least(disclosed, threshold)
    if result is None:
        return _undecided(f"Neither 'age' nor 'over_{threshold}' was disclosed")
    verb = "is" if not result else "is not"
    return PredicateEvaluation(
        satisfied=not result,
        reason=f"Holder {verb} under {threshold}",
        attributes_used=[used],
    )


def _age_between(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    minimum = int(predicate.params["minimum"])
    maximum = int(predicate.params["maximum"])
    lower, lower_used = _at_least(disclosed, minimum)
    upper, upper_used = _at_least(disclosed, maximum + 1)
    used = sorted({name for name in (lower_used, upper_used) if name})

    if lower is False:
        return PredicateEvaluation(
            satisfied=False, reason=f"Holder is under {minimum}", attributes_used=used
        )
    if upper is True:
        return PredicateEvaluation(
            satisfied=False, reason=f"Holder is over {maximum}", attributes_used=used
        )
    if lower is None or upper is None:
        missing = minimum if lower is None else maximum + 1
        return _undecided(f"Neither 'age' nor 'over_{missing}' was disclosed")
    return PredicateEvaluation(
        satisfied=True,
        reason=f"Holder is between {minimum} and {maximum}",
        attributes_used=used,
    )


def _nationality(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    expected = str(predicate.params["country"])
    if "country" not in disclosed:
        return _undecided("'country' was not disclosed")
    satisfied = disclosed["country"].casefold() == expected.casefold()
    return PredicateEvaluation(
        satisfied=satisfied,
        reason=f"Country {'matches' if satisfied else 'does not match'} {expected!r}",
        attributes_used=["country"],
    )


def _attribute_equals(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    name = str(predicate.params["name"])
    if name not in disclosed:
        return _undecided(f"{name!r} was not disclosed")
    expected = canonicalize_value(predicate.params["value"], name)
    satisfied = disclosed[name] == expected
    return PredicateEvaluation(
        satisfied=satisfied,
        reason=f"{name!r} {'equals' if satisfied else 'does not equal'} {expected!r}",
        attributes_used=[name],
    )


def _always(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    return PredicateEvaluation(satisfied=True, reason="No condition requested")


_EVALUATORS: dict[PredicateKind, Callable[[Predicate, Mapping[str, str]], PredicateEvaluation]] = {
    PredicateKind.ALWAYS: _always,
    PredicateKind.AGE_OVER: _age_over,
    PredicateKind.AGE_UNDER: _age_under,
    PredicateKind.AGE_BETWEEN: _age_between,
    PredicateKind.NATIONALITY: _nationality,
    PredicateKind.ATTRIBUTE_EQUALS: _attribute_equals,
}


def evaluate_predicate(predicate: Predicate, disclosed: Mapping[str, str]) -> PredicateEvaluation:
    """Evaluate *predicate* over the disclosed attribute values.

    Args:
        predicate: The condition to check.
        disclosed: Disclosed canonical values keyed by attribute name.

    Returns:
        The evaluation. Undecided predicates are not satisfied.
    """
    evaluation = _EVALUATORS[predicate.kind](predicate, disclosed)
    logger.debug(
        f"Predicate {predicate.kind} -> satisfied={evaluation.satisfied} "
        f"decided={evaluation.decided} ({evaluation.reason})"
    )
    return evaluation
