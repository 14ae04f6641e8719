from __future__ import annotations

from typing import (
    Optional,
)
from typing_extensions import (
    Any,
)

from .brdf import (
    BRDF,
    BRDFS,
    GGXBRDF,
    LambertBRDF,
)
from .error import (
    AverageTerms,
    average_terms,
    fit_error,
)
from .export import gen_ltc_luts
from .fitter import (
    FitProgress,
    LTCFitter,
    ProgressObserverType,
)
from .ltc import LTC
from .neldermead import NelderMead
from .settings import FitSettings
from .table import (
    LTCTable,
    traversal_order,
    warm_start_source,
)
from .tableio import (
    PathType,
    TableFormatError,
    load_table,
    save_table,
)
from . import logging


__all__ = [
    'fit_table',
    'AverageTerms',
    'BRDF',
    'BRDFS',
    'FitProgress',
    'FitSettings',
    'GGXBRDF',
    'LambertBRDF',
    'LTC',
    'LTCFitter',
    'LTCTable',
    'NelderMead',
    'TableFormatError',
    'average_terms',
    'fit_error',
    'gen_ltc_luts',
    'load_table',
    'logging',
    'save_table',
    'traversal_order',
    'warm_start_source',
]


def fit_table(
    brdf: BRDF,
    table_path: Optional[PathType] = None,
    *,
    observer: Optional[ProgressObserverType] = None,
    **kwargs: Any,
) -> LTCTable:
    '''Fit (or resume fitting) an LTC table, extra keyword arguments are FitSettings fields'''
    settings = FitSettings(**kwargs)
    return LTCFitter(brdf, settings, observer=observer).fit(table_path)
