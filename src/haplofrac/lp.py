"""Linear program backends.

The prefilter builds a :class:`ProblemSpec` in standard matrix form

    minimize    c @ x
    subject to  A_ub @ x <= b_ub
                A_eq @ x == b_eq
                lo <= x <= hi

and hands it to any object with a ``solve(problem) -> Solution`` method. Two real
backends are provided: scipy's HiGHS (default) and PuLP/CBC (``pip install
haplofrac[pulp]``). Tests inject stubs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
from scipy.optimize import linprog

logger = logging.getLogger(__name__)

OPTIMAL = "optimal"

Bound = Tuple[Optional[float], Optional[float]]


@dataclass(frozen=True)
class ProblemSpec:
    c: np.ndarray
    A_ub: np.ndarray
    b_ub: np.ndarray
    A_eq: np.ndarray
    b_eq: np.ndarray
    bounds: Tuple[Bound, ...]
    names: Tuple[str, ...]

    @property
    def n_variables(self) -> int:
        return len(self.c)


@dataclass(frozen=True)
class Solution:
    status: str
    x: np.ndarray
    objective: float
    message: str = ""

    @property
    def is_optimal(self) -> bool:
        return self.status == OPTIMAL


class LPBackend(Protocol):
    name: str

    def solve(self, problem: ProblemSpec) -> Solution:
        ...


_LINPROG_STATUS = {
    0: OPTIMAL,
    1: "iteration_limit",
    2: "infeasible",
    3: "unbounded",
    4: "numerical_difficulties",
}


class ScipyLinprogBackend:
    """``scipy.optimize.linprog`` with the HiGHS solver."""

    name = "highs"

    def __init__(self, method: str = "highs") -> None:
        self.method = method

    def solve(self, problem: ProblemSpec) -> Solution:
        res = linprog(
            c=problem.c,
            A_ub=problem.A_ub if problem.A_ub.size else None,
            b_ub=problem.b_ub if problem.b_ub.size else None,
            A_eq=problem.A_eq if problem.A_eq.size else None,
            b_eq=problem.b_eq if problem.b_eq.size else None,
            bounds=list(problem.bounds),
            method=self.method,
        )
        status = _LINPROG_STATUS.get(int(res.status), f"status_{res.status}")
        if status != OPTIMAL or res.x is None:
            return Solution(
                status=status if status != OPTIMAL else "no_solution",
                x=np.full(problem.n_variables, np.nan),
                objective=float("nan"),
                message=str(res.message),
            )
        return Solution(status=OPTIMAL, x=np.asarray(res.x, dtype=float), objective=float(res.fun))


class PulpBackend:
    """PuLP with its bundled CBC solver."""

    name = "cbc"

    def __init__(self, msg: bool = False) -> None:
        import pulp

        self._pulp = pulp
        self.msg = msg

    def solve(self, problem: ProblemSpec) -> Solution:
        pulp = self._pulp
        prob = pulp.LpProblem("haplotype_fractions", pulp.LpMinimize)
        xs = [
            pulp.LpVariable(name, lowBound=lo, upBound=hi)
            for name, (lo, hi) in zip(problem.names, problem.bounds)
        ]
        prob += pulp.lpSum(float(c) * x for c, x in zip(problem.c, xs) if c != 0.0)
        for i, (row, rhs) in enumerate(zip(problem.A_ub, problem.b_ub)):
            prob += _affine(pulp, row, xs) <= float(rhs), f"ub_{i}"
        for i, (row, rhs) in enumerate(zip(problem.A_eq, problem.b_eq)):
            prob += _affine(pulp, row, xs) == float(rhs), f"eq_{i}"

        prob.solve(pulp.PULP_CBC_CMD(msg=self.msg))
        status = pulp.LpStatus[prob.status]
        if status != "Optimal":
            return Solution(
                status=status.lower().replace(" ", "_"),
                x=np.full(problem.n_variables, np.nan),
                objective=float("nan"),
                message=status,
            )
        x = np.array([v.varValue if v.varValue is not None else 0.0 for v in xs], dtype=float)
        return Solution(status=OPTIMAL, x=x, objective=float(problem.c @ x))


def _affine(pulp, row: Sequence[float], xs: List) -> object:
    return pulp.lpSum(float(a) * x for a, x in zip(row, xs) if a != 0.0)


def get_backend(name: str) -> LPBackend:
    if name == "highs":
        return ScipyLinprogBackend()
    if name == "cbc":
        return PulpBackend()
    raise ValueError(f"Unknown LP solver: {name!r} (expected 'highs' or 'cbc')")
