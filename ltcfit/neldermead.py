from __future__ import annotations

from typing import (
    Callable,
    Final,
    Sequence,
)
from typing_extensions import (
    TypeAlias,
)

from . import logging


PointType: TypeAlias = 'list[float]'
ObjectiveType: TypeAlias = 'Callable[[Sequence[float]], float]'

# standard Nelder-Mead coefficients
REFLECT: Final = 1.0
EXPAND: Final = 2.0
CONTRACT: Final = 0.5
SHRINK: Final = 0.5

# keeps the convergence test meaningful when the minimum is exactly zero
TINY: Final = 1e-10


def _lerp(origin: Sequence[float], target: Sequence[float], factor: float) -> PointType:
    return [orig + factor * (targ - orig) for orig, targ in zip(origin, target)]


class NelderMead:
    '''Downhill simplex minimizer

    Only function values are used, which makes it suitable for noisy Monte-Carlo
    objectives. The state of the last run is kept in ``iterations``,
    ``evaluations`` and ``converged``.
    '''

    def __init__(self, dim: int = 4) -> None:
        if dim < 1:
            raise ValueError(f'dimension must be at least 1, got {dim}')
        self.dim = dim
        self.iterations = 0
        self.evaluations = 0
        self.converged = False

    def find_fit(
        self,
        start: Sequence[float],
        explore_delta: float,
        tolerance: float,
        max_iterations: int,
        objective: ObjectiveType,
    ) -> tuple[PointType, float]:
        '''Minimize objective starting from a simplex of size explore_delta around start

        ``tolerance`` is relative: the search stops once
        ``2|f_worst - f_best| <= tolerance * (|f_worst| + |f_best|) + TINY``,
        or after ``max_iterations``. Running out of iterations is not an error,
        the best vertex found so far is returned along with its value.
        '''
        if len(start) != self.dim:
            raise ValueError(f'expected a start point of size {self.dim}, got {len(start)}')

        self.iterations = 0
        self.evaluations = 0
        self.converged = False

        def evaluate(point: PointType) -> float:
            self.evaluations += 1
            return objective(point)

        simplex: list[PointType] = [list(start)]
        for axis in range(self.dim):
            point = list(start)
            point[axis] += explore_delta
            simplex.append(point)
        values = [evaluate(point) for point in simplex]

        while True:
            order = sorted(range(len(simplex)), key=lambda idx: values[idx])
            simplex = [simplex[idx] for idx in order]
            values = [values[idx] for idx in order]
            best, second_worst, worst = values[0], values[-2], values[-1]

            spread = 2.0 * abs(worst - best)
            if spread <= tolerance * (abs(worst) + abs(best)) + TINY:
                self.converged = True
                break
            if self.iterations >= max_iterations:
                break
            self.iterations += 1

            centroid = [
                sum(point[axis] for point in simplex[:-1]) / self.dim
                for axis in range(self.dim)
            ]

            reflected = _lerp(centroid, simplex[-1], -REFLECT)
            reflected_value = evaluate(reflected)

            if reflected_value < best:
                expanded = _lerp(centroid, reflected, EXPAND)
                expanded_value = evaluate(expanded)
                if expanded_value < reflected_value:
                    simplex[-1], values[-1] = expanded, expanded_value
                else:
                    simplex[-1], values[-1] = reflected, reflected_value
                continue

            if reflected_value < second_worst:
                simplex[-1], values[-1] = reflected, reflected_value
                continue

            if reflected_value < worst:
                # outside contraction
                contracted = _lerp(centroid, reflected, CONTRACT)
                contracted_value = evaluate(contracted)
                if contracted_value <= reflected_value:
                    simplex[-1], values[-1] = contracted, contracted_value
                    continue
            else:
                # inside contraction
                contracted = _lerp(centroid, simplex[-1], CONTRACT)
                contracted_value = evaluate(contracted)
                if contracted_value < worst:
                    simplex[-1], values[-1] = contracted, contracted_value
                    continue

            for idx in range(1, len(simplex)):
                simplex[idx] = _lerp(simplex[0], simplex[idx], SHRINK)
                values[idx] = evaluate(simplex[idx])

        if not self.converged:
            logging.debug(
                f'Nelder-Mead stopped after {self.iterations} iterations without converging '
                f'(best error {values[0]:.6g}, spread {worst - best:.6g})'
            )

        return list(simplex[0]), values[0]
