from __future__ import annotations

import math
import struct
from typing import (
    Final,
    NamedTuple,
    Sequence,
)
from typing_extensions import (
    Self,
    TypeAlias,
)

import panda3d.core as p3d


LTCFieldsType: TypeAlias = '''tuple[
    float, float, float, float,
    float, float,
    float, float, float,
    float, float, float,
    float, float, float,
]'''

NUM_FIELDS: Final = 15

# m11 and m22 never go below this, which keeps M invertible
MIN_SCALE: Final = 1e-7

VEC_X: Final = p3d.LVector3f(1, 0, 0)
VEC_Y: Final = p3d.LVector3f(0, 1, 0)
VEC_Z: Final = p3d.LVector3f(0, 0, 1)


def to_float32(value: float) -> float:
    return struct.unpack('<f', struct.pack('<f', value))[0]


class LTCTransform(NamedTuple):
    '''Matrix state derived from an LTC's shape and frame

    Matrices use panda3d's row-vector convention, so directions are
    transformed with ``matrix.xform(direction)``.
    '''
    matrix: p3d.LMatrix3f
    inverse: p3d.LMatrix3f
    determinant: float

    @classmethod
    def build(
        cls,
        shape: p3d.LVecBase4f,
        frame: tuple[p3d.LVector3f, p3d.LVector3f, p3d.LVector3f],
    ) -> Self:
        m11, m22, m13, m23 = shape
        xaxis, yaxis, zaxis = frame

        # Transpose of [[m11, 0, m13], [0, m22, m23], [0, 0, 1]]
        scale = p3d.LMatrix3f(
            m11, 0, 0,
            0, m22, 0,
            m13, m23, 1,
        )
        basis = p3d.LMatrix3f(
            xaxis.x, xaxis.y, xaxis.z,
            yaxis.x, yaxis.y, yaxis.z,
            zaxis.x, zaxis.y, zaxis.z,
        )
        matrix = scale * basis

        # Built in closed form, panda3d refuses to invert float matrices with a
        # determinant as small as the one the MIN_SCALE floor allows
        inv_scale = p3d.LMatrix3f(
            1.0 / m11, 0, 0,
            0, 1.0 / m22, 0,
            -m13 / m11, -m23 / m22, 1,
        )
        inverse = p3d.LMatrix3f()
        inverse.transpose_from(basis)
        inverse = inverse * inv_scale

        return cls(matrix, inverse, m11 * m22 * basis.determinant())


class LTC:
    '''A Linearly Transformed Cosine lobe

    The lobe is a clamped cosine distribution over the hemisphere, warped by a
    3x3 transform built from four shape parameters and an orthonormal frame,
    and scaled by an amplitude. The average Fresnel weight is carried along for
    the renderer and does not take part in evaluation.
    '''

    def __init__(self, amplitude: float = 1.0, fresnel: float = 1.0) -> None:
        self._amplitude = to_float32(amplitude)
        self._fresnel = to_float32(fresnel)
        self._shape = p3d.LVecBase4f(1, 1, 0, 0)
        self._frame = (
            p3d.LVector3f(VEC_X),
            p3d.LVector3f(VEC_Y),
            p3d.LVector3f(VEC_Z),
        )
        self._transform = LTCTransform.build(self._shape, self._frame)

    def __repr__(self) -> str:
        m11, m22, m13, m23 = self.parameters
        return (
            f'LTC(m11={m11}, m22={m22}, m13={m13}, m23={m23}, '
            f'amplitude={self._amplitude}, fresnel={self._fresnel})'
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LTC):
            return NotImplemented
        return self.fields() == other.fields()

    def _update(self) -> None:
        self._transform = LTCTransform.build(self._shape, self._frame)

    @property
    def amplitude(self) -> float:
        return self._amplitude

    @amplitude.setter
    def amplitude(self, value: float) -> None:
        self._amplitude = to_float32(value)

    @property
    def fresnel(self) -> float:
        return self._fresnel

    @fresnel.setter
    def fresnel(self, value: float) -> None:
        self._fresnel = to_float32(value)

    @property
    def m11(self) -> float:
        return self._shape[0]

    @property
    def m22(self) -> float:
        return self._shape[1]

    @property
    def m13(self) -> float:
        return self._shape[2]

    @property
    def m23(self) -> float:
        return self._shape[3]

    @property
    def parameters(self) -> tuple[float, float, float, float]:
        return (self._shape[0], self._shape[1], self._shape[2], self._shape[3])

    @property
    def frame(self) -> tuple[p3d.LVector3f, p3d.LVector3f, p3d.LVector3f]:
        return tuple(p3d.LVector3f(axis) for axis in self._frame) # type: ignore[return-value]

    @property
    def transform(self) -> LTCTransform:
        return self._transform

    def set(self, parameters: Sequence[float], isotropic: bool) -> None:
        '''Set the coefficients of M (not the inverse matrix used at runtime)'''
        m11 = max(parameters[0], MIN_SCALE)
        m22 = max(parameters[1], MIN_SCALE)
        m13 = parameters[2]
        m23 = parameters[3] if len(parameters) > 3 else 0.0

        if isotropic:
            self._shape = p3d.LVecBase4f(m11, m11, 0, 0)
        else:
            self._shape = p3d.LVecBase4f(m11, m22, m13, m23)
        self._update()

    def set_frame(
        self,
        xaxis: p3d.LVecBase3f,
        yaxis: p3d.LVecBase3f,
        zaxis: p3d.LVecBase3f,
    ) -> None:
        self._frame = (
            p3d.LVector3f(xaxis),
            p3d.LVector3f(yaxis),
            p3d.LVector3f(zaxis),
        )
        self._update()

    def eval(self, direction: p3d.LVecBase3f) -> float:
        # Transform into the clamped cosine's space
        original = p3d.LVector3f(self._transform.inverse.xform(direction))
        length = original.length()
        original = original / length

        density = max(0.0, original.z) / math.pi

        # Jacobian of the normalized linear transform, kept in double precision
        # since 1/det reaches 1e14 at the MIN_SCALE floor
        jacobian = 1.0 / abs(self._transform.determinant) / (length * length * length)

        return self._amplitude * density * jacobian

    def sample(self, u1: float, u2: float) -> p3d.LVector3f:
        theta = math.asin(math.sqrt(u1))
        phi = 2 * math.pi * u2
        sintheta = math.sin(theta)
        direction = p3d.LVector3f(
            sintheta * math.cos(phi),
            sintheta * math.sin(phi),
            math.cos(theta),
        )
        return p3d.LVector3f(self._transform.matrix.xform(direction)).normalized()

    def integrate_over_sphere(self, step: float = 0.005) -> float:
        '''Numerically integrate the lobe, which should give back the amplitude'''
        total = 0.0
        num_theta = int(math.pi / step) + 1
        num_phi = int(2 * math.pi / step) + 1
        for thetaidx in range(num_theta):
            theta = thetaidx * step
            sintheta = math.sin(theta)
            costheta = math.cos(theta)
            for phiidx in range(num_phi):
                phi = phiidx * step
                light = p3d.LVector3f(
                    sintheta * math.cos(phi),
                    sintheta * math.sin(phi),
                    costheta,
                )
                total += sintheta * self.eval(light)

        return total * step * step

    def fields(self) -> LTCFieldsType:
        xaxis, yaxis, zaxis = self._frame
        return (
            self._shape[0], self._shape[1], self._shape[2], self._shape[3],
            self._amplitude,
            self._fresnel,
            xaxis.x, xaxis.y, xaxis.z,
            yaxis.x, yaxis.y, yaxis.z,
            zaxis.x, zaxis.y, zaxis.z,
        )

    @classmethod
    def from_fields(cls, fields: Sequence[float]) -> Self:
        if len(fields) != NUM_FIELDS:
            raise ValueError(f'expected {NUM_FIELDS} LTC fields, got {len(fields)}')

        ltc = cls(amplitude=fields[4], fresnel=fields[5])
        ltc._shape = p3d.LVecBase4f(*fields[0:4])
        ltc._frame = (
            p3d.LVector3f(*fields[6:9]),
            p3d.LVector3f(*fields[9:12]),
            p3d.LVector3f(*fields[12:15]),
        )
        ltc._update()
        return ltc

    def copy(self) -> Self:
        return self.from_fields(self.fields())

    def serialize(self, dgram: p3d.Datagram) -> None:
        for value in self.fields():
            dgram.add_float32(value)

    @classmethod
    def deserialize(cls, scan: p3d.DatagramIterator) -> Self:
        return cls.from_fields([scan.get_float32() for _ in range(NUM_FIELDS)])
