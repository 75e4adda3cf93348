"""
Parameter domains and the search space built from them.

A grid entry is either a plain list of candidate values (treated as an
enumerated choice) or a typed domain. Config files describe typed domains as
dicts, e.g. ``{"type": "range", "low": 0.01, "high": 0.3, "num": 3, "log": true}``.
"""
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
from sklearn.model_selection import ParameterGrid

from secchi_ml.utils.exceptions import EmptyGridError
from secchi_ml.utils import constants


class Combination(Mapping):
    """
    One concrete assignment of values to every parameter of a grid.

    Immutable and hashable. Items are kept sorted by parameter name so two
    combinations with the same assignments compare (and hash) equal.
    """

    __slots__ = ('_items',)

    def __init__(self, params: Optional[Mapping] = None, **kwargs):
        merged = dict(params or {})
        merged.update(kwargs)
        object.__setattr__(self, '_items', tuple(sorted(merged.items())))

    def __setattr__(self, name, value):
        raise AttributeError("Combination is immutable")

    def __getitem__(self, key):
        for name, value in self._items:
            if name == key:
                return value
        raise KeyError(key)

    def __iter__(self):
        return (name for name, _ in self._items)

    def __len__(self):
        return len(self._items)

    def __reduce__(self):
        return (Combination, (dict(self._items),))

    def __hash__(self):
        return hash(self._items)

    def __eq__(self, other):
        if isinstance(other, Combination):
            return self._items == other._items
        if isinstance(other, Mapping):
            return dict(self._items) == dict(other)
        return NotImplemented

    def __repr__(self):
        inner = ", ".join(f"{k}={v!r}" for k, v in self._items)
        return f"Combination({inner})"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._items)


@dataclass(frozen=True)
class ChoiceDomain:
    """Enumerated set of candidate values, tried in the given order."""
    name: str
    values: Tuple[Any, ...]
    kind: str = field(default=constants.DOMAIN_CHOICE, init=False)

    def __post_init__(self):
        object.__setattr__(self, 'values', tuple(self.values))
        if not self.values:
            raise EmptyGridError(f"Parameter '{self.name}' has an empty candidate list.")


@dataclass(frozen=True)
class RangeDomain:
    """
    Numeric range sampled at ``num`` points between ``low`` and ``high``
    (inclusive), linearly or on a log scale. Integer ranges are rounded and
    de-duplicated, so they may yield fewer than ``num`` values.
    """
    name: str
    low: float
    high: float
    num: int
    log: bool = False
    integer: bool = False
    kind: str = field(default=constants.DOMAIN_RANGE, init=False)

    def __post_init__(self):
        if self.num < 1:
            raise EmptyGridError(f"Parameter '{self.name}' range has num={self.num}; need at least 1 point.")
        if not (math.isfinite(self.low) and math.isfinite(self.high)):
            raise ValueError(f"Parameter '{self.name}' range bounds must be finite.")
        if self.low > self.high:
            raise ValueError(f"Parameter '{self.name}' range has low ({self.low}) > high ({self.high}).")
        if self.log and self.low <= 0:
            raise ValueError(f"Parameter '{self.name}' log range requires low > 0, got {self.low}.")

    @property
    def values(self) -> Tuple[Any, ...]:
        if self.num == 1:
            points = np.array([self.low])
        elif self.log:
            points = np.geomspace(self.low, self.high, self.num)
        else:
            points = np.linspace(self.low, self.high, self.num)

        if not self.integer:
            return tuple(points.tolist())

        seen = []
        for p in np.rint(points).astype(int).tolist():
            if p not in seen:
                seen.append(p)
        return tuple(seen)


ParameterDomain = Union[ChoiceDomain, RangeDomain]


def parse_domain(name: str, spec: Any) -> ParameterDomain:
    """
    Turn one grid entry into a typed domain.

    Accepts an existing domain, a list/tuple of candidates, or a dict with a
    ``type`` key of ``choice`` or ``range``.
    """
    if isinstance(spec, (ChoiceDomain, RangeDomain)):
        return spec

    if isinstance(spec, Mapping):
        kind = spec.get('type', constants.DOMAIN_CHOICE)
        if kind == constants.DOMAIN_CHOICE:
            return ChoiceDomain(name, tuple(spec.get('values', ())))
        if kind == constants.DOMAIN_RANGE:
            missing = [k for k in ('low', 'high', 'num') if k not in spec]
            if missing:
                raise ValueError(f"Parameter '{name}' range is missing {missing}.")
            return RangeDomain(
                name=name,
                low=float(spec['low']),
                high=float(spec['high']),
                num=int(spec['num']),
                log=bool(spec.get('log', False)),
                integer=bool(spec.get('integer', False)),
            )
        raise ValueError(f"Parameter '{name}' has unknown domain type '{kind}'.")

    if isinstance(spec, (str, bytes)) or not isinstance(spec, (Sequence, np.ndarray)):
        raise TypeError(
            f"Parameter '{name}' needs a sequence of candidate values or a domain dict, got {spec!r}."
        )

    return ChoiceDomain(name, tuple(spec.tolist() if isinstance(spec, np.ndarray) else spec))


Constraint = Tuple[str, Callable[[Combination], bool]]


class ParameterSpace:
    """
    Cartesian product of parameter domains plus optional named constraints.

    Enumeration is lexicographic over parameter names (the first name varies
    slowest), then value order within each domain.
    """

    def __init__(self, domains: Mapping[str, ParameterDomain],
                 constraints: Optional[List[Constraint]] = None):
        if not domains:
            raise EmptyGridError("Hyperparameter grid has no parameters.")
        self.domains: Dict[str, ParameterDomain] = dict(sorted(domains.items()))
        self.constraints: List[Constraint] = list(constraints or [])

    @classmethod
    def from_grid(cls, grid: Union['ParameterSpace', Mapping[str, Any]],
                  constraints: Optional[List[Constraint]] = None) -> 'ParameterSpace':
        if isinstance(grid, ParameterSpace):
            if constraints:
                return cls(grid.domains, grid.constraints + list(constraints))
            return grid
        if not isinstance(grid, Mapping):
            raise TypeError(f"Grid must be a mapping of parameter name to candidates, got {type(grid).__name__}.")
        domains = {name: parse_domain(name, spec) for name, spec in grid.items()}
        return cls(domains, constraints)

    @property
    def size(self) -> int:
        return len(self._parameter_grid())

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[Combination]:
        for params in self._parameter_grid():
            yield Combination(params)

    def _parameter_grid(self) -> ParameterGrid:
        return ParameterGrid({name: list(d.values) for name, d in self.domains.items()})

    def violations(self, combination: Combination) -> List[str]:
        """Names of constraints the combination breaks (empty when valid)."""
        broken = []
        for name, predicate in self.constraints:
            if not predicate(combination):
                broken.append(name)
        return broken

    def describe(self) -> Dict[str, Any]:
        return {name: list(d.values) for name, d in self.domains.items()}
