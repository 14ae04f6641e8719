#!/usr/bin/env python
from __future__ import annotations

import argparse
import math
from typing import (
    Optional,
    Sequence,
)

import panda3d.core as p3d

from . import logging
from .brdf import BRDFS
from .export import gen_ltc_luts
from .fitter import FitProgress, LTCFitter
from .settings import FitSettings


def log_progress(progress: FitProgress) -> None:
    if not logging.debug_enabled():
        return
    logging.debug(
        f'{progress.fraction_complete * 100:.1f}% '
        f'theta={math.degrees(progress.theta):.2f} alpha={progress.alpha:.4f} '
        f'error={progress.error:.6g}'
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    defaults = FitSettings()
    parser = argparse.ArgumentParser(
        description='CLI tool to fit a table of Linearly Transformed Cosines to a BRDF',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument('brdf', choices=sorted(BRDFS), help='BRDF to fit')
    parser.add_argument(
        'dst',
        type=str,
        help='table file, resumed from if it already exists'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true'
    )
    parser.add_argument(
        '--table-size',
        type=int,
        help='the number of roughness values and view angles in the table',
        default=defaults.table_size
    )
    parser.add_argument(
        '--samples',
        type=int,
        help='the number of samples along each axis of the error estimate grid',
        default=defaults.num_samples
    )
    parser.add_argument(
        '--max-iterations',
        type=int,
        help='the maximum number of Nelder-Mead iterations per cell',
        default=defaults.max_iterations
    )
    parser.add_argument(
        '--start-row',
        type=int,
        help='the roughness row to start fitting from, negative values count from the end',
        default=defaults.start_row
    )
    parser.add_argument(
        '--align-average-direction',
        action='store_true',
        help='orient anisotropic lobes along the average BRDF direction',
        default=defaults.align_to_average_direction
    )
    parser.add_argument(
        '--export',
        type=str,
        metavar='PREFIX',
        help='also write PREFIX_1.txo and PREFIX_2.txo runtime lookup textures'
    )

    args = parser.parse_args(argv)

    if args.verbose:
        p3d.load_prc_file_data('', 'notify-level-ltcfit debug')

    settings = FitSettings(
        table_size=args.table_size,
        num_samples=args.samples,
        max_iterations=args.max_iterations,
        explore_delta=defaults.explore_delta,
        tolerance=defaults.tolerance,
        min_alpha=defaults.min_alpha,
        start_row=args.start_row,
        align_to_average_direction=args.align_average_direction,
    )

    fitter = LTCFitter(BRDFS[args.brdf](), settings, observer=log_progress)
    table = fitter.fit(args.dst)

    if args.export:
        matrix_lut, terms_lut = gen_ltc_luts(table)
        matrix_lut.write(p3d.Filename.from_os_specific(f'{args.export}_1.txo'))
        terms_lut.write(p3d.Filename.from_os_specific(f'{args.export}_2.txo'))

if __name__ == '__main__':
    main()
