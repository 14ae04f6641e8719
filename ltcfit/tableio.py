from __future__ import annotations

import os
from pathlib import Path
from typing import (
    Final,
    Union,
)
from typing_extensions import (
    TypeAlias,
)

import panda3d.core as p3d

from . import logging
from .ltc import LTC, NUM_FIELDS
from .table import LTCTable


PathType: TypeAlias = 'Union[p3d.Filename, Path, str]'

HEADER_SIZE: Final = 8
LTC_SIZE: Final = NUM_FIELDS * 4


class TableFormatError(RuntimeError):
    pass


def _to_filename(path: PathType) -> p3d.Filename:
    if isinstance(path, Path):
        path = p3d.Filename(path)

    if not isinstance(path, p3d.Filename):
        path = p3d.Filename.from_os_specific(path)

    return path


def table_to_datagram(table: LTCTable) -> p3d.Datagram:
    '''Pack a table: both dimensions, then one presence flag and lobe per cell

    Rows are view angles and columns are roughness values.
    '''
    dgram = p3d.Datagram()
    dgram.add_uint32(table.size)
    dgram.add_uint32(table.size)
    for theta_index in range(table.size):
        for roughness_index in range(table.size):
            ltc = table[roughness_index, theta_index]
            dgram.add_bool(ltc is not None)
            if ltc is not None:
                ltc.serialize(dgram)

    return dgram


def table_from_datagram(dgram: p3d.Datagram, size: int) -> LTCTable:
    scan = p3d.DatagramIterator(dgram)
    if scan.get_remaining_size() < HEADER_SIZE:
        raise TableFormatError('LTC table is too short to hold its dimensions')

    width = scan.get_uint32()
    height = scan.get_uint32()
    if width != size or height != size:
        raise TableFormatError(
            f'LTC table is {width}x{height}, expected {size}x{size}'
        )

    table = LTCTable(size)
    for theta_index in range(height):
        for roughness_index in range(width):
            if scan.get_remaining_size() < 1:
                raise TableFormatError(
                    f'LTC table is truncated at cell ({roughness_index}, {theta_index})'
                )
            if not scan.get_bool():
                continue
            if scan.get_remaining_size() < LTC_SIZE:
                raise TableFormatError(
                    f'LTC table is truncated at cell ({roughness_index}, {theta_index})'
                )
            table[roughness_index, theta_index] = LTC.deserialize(scan)

    if scan.get_remaining_size():
        raise TableFormatError(
            f'LTC table has {scan.get_remaining_size()} unexpected trailing bytes'
        )

    return table


def save_table(table: LTCTable, path: PathType) -> None:
    filename = _to_filename(path)
    ospath = filename.to_os_specific()
    tmppath = f'{ospath}.tmp'

    with open(tmppath, 'wb') as tablefile:
        tablefile.write(table_to_datagram(table).get_message())
    os.replace(tmppath, ospath)

    logging.info(f'Saved LTC table with {table.filled_count()} fitted cells to {filename}')


def load_table(path: PathType, size: int) -> LTCTable:
    '''Load a table, or return an empty one if the file does not exist'''
    filename = _to_filename(path)
    if not filename.exists():
        logging.info(f'No LTC table found at {filename}, starting from scratch')
        return LTCTable(size)

    with open(filename.to_os_specific(), 'rb') as tablefile:
        data = tablefile.read()

    table = table_from_datagram(p3d.Datagram(data), size)
    logging.info(f'Loaded LTC table with {table.filled_count()} fitted cells from {filename}')
    return table
