from __future__ import annotations

import functools
from typing import (
    Final,
    NamedTuple,
)
from typing_extensions import (
    TypeAlias,
)

import panda3d.core as p3d

from .brdf import BRDF
from .ltc import LTC


# number of samples per axis used to compute the error during fitting
DEFAULT_NUM_SAMPLES: Final = 50

SampleGridType: TypeAlias = 'tuple[tuple[float, float], ...]'


@functools.cache
def stratified_samples(num_samples: int) -> SampleGridType:
    '''Centres of a num_samples x num_samples grid over the unit square'''
    return tuple(
        ((i + 0.5) / num_samples, (j + 0.5) / num_samples)
        for j in range(num_samples)
        for i in range(num_samples)
    )


class AverageTerms(NamedTuple):
    norm: float
    fresnel: float
    average_dir: p3d.LVector3f


def average_terms(
    brdf: BRDF,
    view: p3d.LVector3f,
    alpha: float,
    num_samples: int = DEFAULT_NUM_SAMPLES
) -> AverageTerms:
    '''Compute the BRDF's directional albedo, average Fresnel weight and average direction'''
    norm = 0.0
    fresnel = 0.0
    avgx = avgy = avgz = 0.0

    for u1, u2 in stratified_samples(num_samples):
        light = brdf.sample(view, alpha, u1, u2)
        value, pdf = brdf.eval(view, light, alpha)
        if pdf == 0.0:
            continue

        hvec = (view + light).normalized()
        weight = value / pdf

        norm += weight
        fresnel += weight * (1 - view.dot(hvec)) ** 5
        avgx += weight * light.x
        avgy += weight * light.y
        avgz += weight * light.z

    count = num_samples * num_samples
    norm /= count
    fresnel /= count

    # y should be zero for isotropic BRDFs
    average_dir = p3d.LVector3f(avgx, 0, avgz)
    if not average_dir.normalize():
        average_dir = p3d.LVector3f(0, 0, 1)

    return AverageTerms(norm, fresnel, average_dir)


def fit_error(
    ltc: LTC,
    brdf: BRDF,
    view: p3d.LVector3f,
    alpha: float,
    num_samples: int = DEFAULT_NUM_SAMPLES
) -> float:
    '''Error between the BRDF and the LTC using multiple importance sampling

    Every sample pair is used twice, once to sample the LTC and once to sample
    the BRDF, and both are weighted with the balance heuristic. The absolute
    difference is cubed.
    '''
    amplitude = ltc.amplitude

    def sample_error(light: p3d.LVector3f) -> float:
        value_brdf, pdf_brdf = brdf.eval(view, light, alpha)
        value_ltc = ltc.eval(light)
        pdf_ltc = value_ltc / amplitude if amplitude != 0 else 0.0

        pdf_sum = pdf_ltc + pdf_brdf
        if pdf_sum <= 0.0:
            return 0.0

        return abs(value_brdf - value_ltc) ** 3 / pdf_sum

    error = 0.0
    for u1, u2 in stratified_samples(num_samples):
        error += sample_error(ltc.sample(u1, u2))
        error += sample_error(brdf.sample(view, alpha, u1, u2))

    return error / (num_samples * num_samples)
