from __future__ import annotations

import struct
import typing
from typing import (
    Final,
)

import panda3d.core as p3d

from . import logging
from .ltc import LTC
from .table import LTCTable


# the runtime textures have no slot for m23, which is dropped from the exported inverse
MAX_DROPPED_SHEAR: Final = 1e-4


def _make_lut(name: str, size: int) -> p3d.Texture:
    lut = p3d.Texture(name)
    lut.setup_2d_texture(size, size, p3d.Texture.T_float, p3d.Texture.F_rgba32)
    lut.wrap_u = p3d.SamplerState.WM_clamp
    lut.wrap_v = p3d.SamplerState.WM_clamp
    lut.minfilter = p3d.SamplerState.FT_linear
    lut.magfilter = p3d.SamplerState.FT_linear
    return lut


def runtime_coefficients(ltc: LTC) -> tuple[float, float, float, float]:
    '''Inverse transform entries needed by a shader, normalized by the middle element

    Returns (m00, m20, m02, m22) of M^-1 in column-vector notation.
    '''
    # The stored inverse is transposed (row-vector convention)
    inverse = ltc.transform.inverse
    middle = inverse.get_cell(1, 1)
    return (
        inverse.get_cell(0, 0) / middle,
        inverse.get_cell(0, 2) / middle,
        inverse.get_cell(2, 0) / middle,
        inverse.get_cell(2, 2) / middle,
    )


def gen_ltc_luts(table: LTCTable) -> tuple[p3d.Texture, p3d.Texture]:
    '''Build the textures sampled at runtime, x being the view angle and y the roughness'''
    size = table.size
    matrix_lut = _make_lut('ltc_matrix_lut', size)
    terms_lut = _make_lut('ltc_terms_lut', size)

    matrix_handle = typing.cast(memoryview, matrix_lut.modify_ram_image())
    terms_handle = typing.cast(memoryview, terms_lut.modify_ram_image())
    pixelsize = matrix_lut.component_width * matrix_lut.num_components

    num_missing = 0
    num_sheared = 0
    for ycoord in range(size):
        for xcoord in range(size):
            idx = (ycoord * size + xcoord) * pixelsize
            ltc = table[ycoord, xcoord]
            if ltc is None:
                num_missing += 1
                coeffs = (1.0, 0.0, 0.0, 1.0)
                terms = (0.0, 0.0, 0.0, 0.0)
            else:
                coeffs = runtime_coefficients(ltc)
                if abs(ltc.m23) > MAX_DROPPED_SHEAR:
                    num_sheared += 1
                terms = (ltc.amplitude, ltc.fresnel, 0.0, 0.0)

            # Texture RAM images are stored as BGRA
            struct.pack_into('ffff', matrix_handle, idx, coeffs[2], coeffs[1], coeffs[0], coeffs[3])
            struct.pack_into('ffff', terms_handle, idx, terms[2], terms[1], terms[0], terms[3])

    if num_missing:
        logging.warning(
            f'{num_missing} of {size * size} LTC table cells have not been fitted, '
            'exporting identity lobes for them'
        )
    if num_sheared:
        logging.warning(
            f'{num_sheared} LTC table cells have a non-zero m23, '
            'which the runtime textures cannot represent'
        )

    return matrix_lut, terms_lut
