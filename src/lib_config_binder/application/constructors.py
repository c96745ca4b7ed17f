"""Constructor scoring and selection.

Every constructor of the resolved type becomes a :class:`ConstructorCandidate`
scored against the configuration keys available at the node. Candidates are
ordered by:

1. invokable without defaults (every parameter matched by key or resolver),
   then invokable with defaults (every parameter matched or defaulted), then
   not invokable;
2. more parameters matched strictly by name;
3. more parameters matched by name or resolver;
4. fewer parameters in total;
5. declaration order (``__init__`` first, then marked factory methods).

A resolver only ever fills parameters no key matches, so it can lift a
candidate's rank but never override a direct name match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..domain.errors import missing_required_constructor_parameters, no_public_constructors_found, type_name
from ..domain.identifiers import identifiers_match
from ..observability import log_debug
from .resolver import Resolver
from .schema import ConstructorSchema, ParameterSchema, TypeSchema


def _matching_key(parameter: ParameterSchema, keys: Sequence[str]) -> str | None:
    for name in parameter.names:
        for key in keys:
            if identifiers_match(name, key):
                return key
    return None


@dataclass(frozen=True)
class ConstructorCandidate:
    """Score of one constructor against the available configuration keys.

    Attributes
    ----------
    matched_keys:
        Per parameter, the configuration key that matches it or ``None``.
    resolvable:
        Per parameter, whether the resolver can supply it (only computed for
        parameters without a matching key).
    """

    constructor: ConstructorSchema
    matched_keys: tuple[str | None, ...]
    resolvable: tuple[bool, ...]

    @classmethod
    def evaluate(cls, constructor: ConstructorSchema, keys: Sequence[str], resolver: Resolver) -> ConstructorCandidate:
        """Match each parameter against *keys*, asking *resolver* about the rest."""

        matched: list[str | None] = []
        resolvable: list[bool] = []
        for parameter in constructor.parameters:
            key = _matching_key(parameter, keys)
            matched.append(key)
            resolvable.append(key is None and resolver.can_resolve(parameter.annotation, parameter.name))
        return cls(constructor, tuple(matched), tuple(resolvable))

    @property
    def total_parameters(self) -> int:
        return len(self.constructor.parameters)

    @property
    def matched_named_parameters(self) -> int:
        return sum(1 for key in self.matched_keys if key is not None)

    @property
    def matched_parameters(self) -> int:
        return self.matched_named_parameters + sum(self.resolvable)

    @property
    def missing_parameter_names(self) -> tuple[str, ...]:
        """Parameters with no key, no resolver service and no default."""

        return tuple(
            parameter.name
            for parameter, key, resolvable in zip(self.constructor.parameters, self.matched_keys, self.resolvable)
            if key is None and not resolvable and not parameter.has_default
        )

    @property
    def is_invokable_without_defaults(self) -> bool:
        return self.matched_parameters == self.total_parameters

    @property
    def is_invokable_with_defaults(self) -> bool:
        return not self.missing_parameter_names

    @property
    def tier(self) -> int:
        """0: every parameter supplied; 1: the rest have defaults; 2: not invokable."""

        if self.is_invokable_without_defaults:
            return 0
        if self.is_invokable_with_defaults:
            return 1
        return 2

    def sort_key(self) -> tuple[int, int, int, int, int]:
        """Ascending order ranks candidates best first.

        Ties on the tier go to more key matches, then more supplied
        parameters, then fewer parameters, then declaration order.
        """

        return (
            self.tier,
            -self.matched_named_parameters,
            -self.matched_parameters,
            self.total_parameters,
            self.constructor.index,
        )

    def __repr__(self) -> str:
        return (
            f"ConstructorCandidate({self.constructor.name}, total={self.total_parameters}, "
            f"matched={self.matched_parameters}, named={self.matched_named_parameters}, tier={self.tier})"
        )


def order_candidates(
    constructors: Sequence[ConstructorSchema], keys: Sequence[str], resolver: Resolver
) -> list[ConstructorCandidate]:
    """Return candidates for *constructors*, best first."""

    candidates = [ConstructorCandidate.evaluate(constructor, keys, resolver) for constructor in constructors]
    return sorted(candidates, key=ConstructorCandidate.sort_key)


def select_constructor(
    schema: TypeSchema, keys: Sequence[str], resolver: Resolver, path: str | None
) -> ConstructorCandidate:
    """Pick the best constructor of *schema* or raise ``ConstructorResolutionFailure``."""

    if not schema.constructors:
        raise no_public_constructors_found(schema.target, path)
    ordered = order_candidates(schema.constructors, keys, resolver)
    best = ordered[0]
    if not best.is_invokable_with_defaults:
        raise missing_required_constructor_parameters(schema.target, list(best.missing_parameter_names), path)
    log_debug(
        "constructor_selected",
        path=path,
        target=type_name(schema.target),
        constructor=best.constructor.name,
        candidates=len(ordered),
    )
    return best
