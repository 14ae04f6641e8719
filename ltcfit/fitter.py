from __future__ import annotations

from dataclasses import dataclass
import itertools
import math
import time
from typing import (
    Callable,
    Final,
    Optional,
    Sequence,
)
from typing_extensions import (
    TypeAlias,
)

import panda3d.core as p3d

from . import logging
from .brdf import BRDF
from .error import average_terms, fit_error
from .ltc import LTC
from .neldermead import NelderMead
from .settings import FitSettings
from .table import LTCTable, traversal_order, warm_start_source
from .tableio import PathType, load_table, save_table


# cos(1.57), keeps the view direction above the horizon
MIN_COS_THETA: Final = 3.7540224885647058065387021283285e-4


@dataclass(frozen=True)
class FitProgress:
    fraction_complete: float
    error: float
    theta: float
    alpha: float
    brdf: BRDF
    ltc: LTC


ProgressObserverType: TypeAlias = 'Callable[[FitProgress], None]'


def view_cos_theta(theta_index: int, table_size: int) -> float:
    # parameterised by sqrt(1 - cos(theta)), giving more cells near grazing angles
    x = theta_index / (table_size - 1)
    return max(MIN_COS_THETA, 1.0 - x * x)


def view_direction(theta_index: int, table_size: int) -> p3d.LVector3f:
    costheta = view_cos_theta(theta_index, table_size)
    return p3d.LVector3f(math.sqrt(1 - costheta * costheta), 0, costheta)


def roughness_alpha(roughness_index: int, table_size: int, min_alpha: float) -> float:
    # alpha = perceptual_roughness^2, the perceptual roughness being what artists paint
    perceptual_roughness = roughness_index / (table_size - 1)
    return max(min_alpha, perceptual_roughness * perceptual_roughness)


class LTCFitter:
    '''Fits an LTC lobe for every (roughness, view angle) cell of a table

    Cells are visited in ``traversal_order`` and every fit is seeded with the
    result of the cell it depends on. When a table path is given, the table is
    loaded from it first and written back after every completed roughness row,
    so an interrupted run picks up where it stopped.
    '''

    def __init__(
        self,
        brdf: BRDF,
        settings: Optional[FitSettings] = None,
        observer: Optional[ProgressObserverType] = None,
    ) -> None:
        self.brdf = brdf
        self.settings = settings if settings is not None else FitSettings()
        self.observer = observer
        self._optimizer = NelderMead(4)

    def fit(self, table_path: Optional[PathType] = None) -> LTCTable:
        size = self.settings.table_size
        if table_path is not None:
            table = load_table(table_path, size)
        else:
            table = LTCTable(size)

        total_cells = size * size
        cells = traversal_order(size, self.settings.first_row)
        for roughness_index, row in itertools.groupby(cells, key=lambda cell: cell[0]):
            starttime = time.perf_counter()
            num_fitted = 0
            for _, theta_index in row:
                if table[roughness_index, theta_index] is not None:
                    continue

                ltc, error = self.fit_cell(table, roughness_index, theta_index)
                table[roughness_index, theta_index] = ltc
                num_fitted += 1

                if self.observer is not None:
                    self.observer(FitProgress(
                        fraction_complete=table.filled_count() / total_cells,
                        error=error,
                        theta=math.acos(view_cos_theta(theta_index, size)),
                        alpha=roughness_alpha(roughness_index, size, self.settings.min_alpha),
                        brdf=self.brdf,
                        ltc=ltc.copy(),
                    ))

            if not num_fitted:
                continue

            tottime = time.perf_counter() - starttime
            logging.info(
                f'Fitted {num_fitted} cells of roughness row {roughness_index} '
                f'in {tottime:.3f}s'
            )
            if table_path is not None:
                save_table(table, table_path)

        return table

    def _seed(
        self,
        table: LTCTable,
        roughness_index: int,
        theta_index: int,
    ) -> tuple[Sequence[float], bool]:
        source_index = warm_start_source(table.size, roughness_index, theta_index)
        source = table[source_index] if source_index is not None else None
        min_alpha = self.settings.min_alpha

        if theta_index == 0:
            # at normal incidence the lobe is rotationally symmetric around Z
            if source is None:
                return (1.0, 1.0, 0.0, 0.0), True
            return (max(source.m11, min_alpha), max(source.m22, min_alpha), 0.0, 0.0), True

        if source is None:
            raise RuntimeError(
                f'cell ({roughness_index}, {theta_index}) was reached before '
                f'the cell it is seeded from'
            )
        return source.parameters, False

    def fit_cell(
        self,
        table: LTCTable,
        roughness_index: int,
        theta_index: int,
    ) -> tuple[LTC, float]:
        '''Fit a single cell, seeding it from the cells already in the table'''
        settings = self.settings
        size = table.size
        view = view_direction(theta_index, size)
        alpha = roughness_alpha(roughness_index, size, settings.min_alpha)

        terms = average_terms(self.brdf, view, alpha, settings.num_samples)
        ltc = LTC(amplitude=terms.norm, fresnel=terms.fresnel)

        start, isotropic = self._seed(table, roughness_index, theta_index)
        if not isotropic and settings.align_to_average_direction:
            avgdir = terms.average_dir
            ltc.set_frame(
                p3d.LVector3f(avgdir.z, 0, -avgdir.x),
                p3d.LVector3f(0, 1, 0),
                avgdir,
            )
        ltc.set(start, isotropic)

        def objective(parameters: Sequence[float]) -> float:
            ltc.set(parameters, isotropic)
            return fit_error(ltc, self.brdf, view, alpha, settings.num_samples)

        best, error = self._optimizer.find_fit(
            ltc.parameters,
            settings.explore_delta,
            settings.tolerance,
            settings.max_iterations,
            objective,
        )
        ltc.set(best, isotropic)

        logging.debug(
            f'Cell ({roughness_index}, {theta_index}): alpha={alpha:.4f} '
            f'theta={math.degrees(math.acos(view.z)):.2f} error={error:.6g} '
            f'iterations={self._optimizer.iterations} {ltc}'
        )
        return ltc, error
