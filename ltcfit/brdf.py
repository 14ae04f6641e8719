from __future__ import annotations
# pylint: disable=invalid-name

import math
from typing import (
    Final,
)
from typing_extensions import (
    Protocol,
    TypeAlias,
)

import panda3d.core as p3d


EvalResultType: TypeAlias = 'tuple[float, float]'


class BRDF(Protocol):
    '''Reflectance function consumed by the fitter

    Directions are in tangent space with the normal along +Z. ``eval`` returns
    the BRDF value multiplied by the cosine of the light direction, together
    with the pdf ``sample`` draws that light direction with.
    '''
    name: str

    def eval(
        self,
        view: p3d.LVector3f,
        light: p3d.LVector3f,
        alpha: float
    ) -> EvalResultType:
        ...

    def sample(
        self,
        view: p3d.LVector3f,
        alpha: float,
        u1: float,
        u2: float
    ) -> p3d.LVector3f:
        ...


def cosine_sample_hemisphere(u1: float, u2: float) -> p3d.LVector3f:
    theta = math.asin(math.sqrt(u1))
    phi = 2 * math.pi * u2
    sintheta = math.sin(theta)
    return p3d.LVector3f(
        sintheta * math.cos(phi),
        sintheta * math.sin(phi),
        math.cos(theta)
    )


class LambertBRDF:
    name: Final = 'lambert'

    def eval(
        self,
        view: p3d.LVector3f,
        light: p3d.LVector3f,
        alpha: float
    ) -> EvalResultType:
        value = max(light.z, 0.0) / math.pi
        return value, value

    def sample(
        self,
        view: p3d.LVector3f,
        alpha: float,
        u1: float,
        u2: float
    ) -> p3d.LVector3f:
        return cosine_sample_hemisphere(u1, u2)


def smith_lambda_ggx(alpha: float, costheta: float) -> float:
    if costheta >= 1.0:
        return 0.0
    a = 1.0 / (alpha * math.tan(math.acos(costheta)))
    return 0.5 * (-1.0 + math.sqrt(1.0 + 1.0 / (a * a)))


def distribution_ggx(hvec: p3d.LVector3f, alpha: float) -> float:
    slopex = hvec.x / hvec.z
    slopey = hvec.y / hvec.z
    dist = 1.0 / (1.0 + (slopex * slopex + slopey * slopey) / (alpha * alpha))
    dist = dist * dist
    return dist / (math.pi * alpha * alpha * hvec.z ** 4)


class GGXBRDF:
    name: Final = 'ggx'

    def eval(
        self,
        view: p3d.LVector3f,
        light: p3d.LVector3f,
        alpha: float
    ) -> EvalResultType:
        if view.z <= 0:
            return 0.0, 0.0

        hvec = view + light
        if hvec.length_squared() == 0 or hvec.z <= 0:
            return 0.0, 0.0
        hvec.normalize()

        vdoth = view.dot(hvec)
        if vdoth == 0:
            return 0.0, 0.0

        # height-correlated masking-shadowing
        lambda_view = smith_lambda_ggx(alpha, view.z)
        if light.z <= 0:
            geom = 0.0
        else:
            geom = 1.0 / (1.0 + lambda_view + smith_lambda_ggx(alpha, light.z))

        dist = distribution_ggx(hvec, alpha)

        pdf = abs(dist * hvec.z / 4.0 / vdoth)
        value = dist * geom / 4.0 / view.z

        return value, pdf

    def sample(
        self,
        view: p3d.LVector3f,
        alpha: float,
        u1: float,
        u2: float
    ) -> p3d.LVector3f:
        phi = 2 * math.pi * u1
        radius = alpha * math.sqrt(u2 / (1.0 - u2))
        normal = p3d.LVector3f(radius * math.cos(phi), radius * math.sin(phi), 1.0).normalized()
        return normal * 2.0 * normal.dot(view) - view


BRDFS: Final[dict[str, type[BRDF]]] = {
    LambertBRDF.name: LambertBRDF,
    GGXBRDF.name: GGXBRDF,
}
