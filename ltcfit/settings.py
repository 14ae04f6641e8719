from __future__ import annotations

from dataclasses import (
    dataclass,
    field,
    Field,
    MISSING,
)
import functools
from typing_extensions import (
    Any,
    TypeVar,
)

import panda3d.core as p3d


PRC_PREFIX = 'ltcfit'

TypeT = TypeVar('TypeT', bound=type)
def add_prc_fields(cls: TypeT) -> TypeT:
    '''Default every public, simply-typed field from an ltcfit-* PRC variable'''
    prc_types = {
        'int': p3d.ConfigVariableInt,
        'bool': p3d.ConfigVariableBool,
        'float': p3d.ConfigVariableDouble,
        'str': p3d.ConfigVariableString,
    }

    def factoryfn(attrname: str, attrtype: str, default_value: Any) -> Any:
        name = f'{PRC_PREFIX}-{attrname.replace("_", "-")}'
        if isinstance(default_value, Field):
            if default_value.default_factory is not MISSING:
                default_value = default_value.default_factory()
            elif default_value.default is not MISSING:
                default_value = default_value.default
        return prc_types[attrtype](
            name=name,
            default_value=default_value,
        ).value

    annotations = cls.__dict__.get('__annotations__', {})
    for attrname, attrtype in annotations.items():
        if attrname.startswith('_') or attrtype not in prc_types:
            continue

        default_value = getattr(cls, attrname)
        # pylint:disable-next=invalid-field-call
        setattr(cls, attrname, field(
            default_factory=functools.partial(factoryfn, attrname, attrtype, default_value)
        ))
    return cls


@dataclass()
@add_prc_fields
class FitSettings:
    table_size: int = 64
    num_samples: int = 50
    max_iterations: int = 1000
    explore_delta: float = 0.05
    tolerance: float = 1e-5
    # minimal roughness, avoids singularities
    min_alpha: float = 0.0001
    # Python-style index, -1 starts from the roughest row
    start_row: int = -1
    align_to_average_direction: bool = False

    def __post_init__(self) -> None:
        if self.table_size < 2:
            raise ValueError(f'table_size must be at least 2, got {self.table_size}')
        if self.num_samples < 1:
            raise ValueError(f'num_samples must be at least 1, got {self.num_samples}')
        if self.max_iterations < 0:
            raise ValueError(f'max_iterations must not be negative, got {self.max_iterations}')
        if not -self.table_size <= self.start_row < self.table_size:
            raise ValueError(
                f'start_row {self.start_row} is out of range for a table of size {self.table_size}'
            )

    @property
    def first_row(self) -> int:
        return self.start_row % self.table_size
