from typing import Union

import logging

import numpy as np

from . import halffloat
from .entries import (
  EntryKind, EntrySpec,
  OFFSETS_UINT32, OFFSETS_UINT64,
  POSITIONS_FLOAT16, POSITIONS_FLOAT32,
)
from .headers import FormatError, OFFSETS_DTYPE, POSITIONS_DTYPE

logger = logging.getLogger(__name__)

OFFSET_WIDTHS = {
  4: OFFSETS_UINT32,
  8: OFFSETS_UINT64,
}

POSITION_WIDTHS = {
  2: POSITIONS_FLOAT16,
  4: POSITIONS_FLOAT32,
}

def _whole_elements(buffer, itemsize:int, name:str, strict:bool) -> memoryview:
  buffer = memoryview(buffer).cast('B')
  remainder = len(buffer) % itemsize
  if remainder:
    msg = (
      f"{name}: {len(buffer)} bytes is not a multiple of the "
      f"{itemsize} byte element width, {remainder} trailing bytes."
    )
    if strict:
      raise FormatError(msg)
    logger.warning(msg + " Ignoring them.")
    buffer = buffer[:len(buffer) - remainder]
  return buffer

def decode_offsets(
  buffer:bytes,
  spec:Union[EntrySpec, int] = OFFSETS_UINT64,
  name:str = "offsets",
  strict:bool = False,
) -> np.ndarray:
  """
  Interpret a little endian run of unsigned 32 or 64 bit
  integers as uint64 point offsets.
  """
  if not isinstance(spec, EntrySpec):
    spec = OFFSET_WIDTHS[int(spec)]
  if spec.kind != EntryKind.OFFSETS:
    raise ValueError(f"Not an offsets entry: {spec}")

  buffer = _whole_elements(buffer, spec.itemsize, name, strict)
  if len(buffer) == 0:
    return np.zeros((0,), dtype=OFFSETS_DTYPE)
  offsets = np.frombuffer(buffer, dtype=spec.dtype)
  # u4 -> u8 is zero extended, never sign extended
  return offsets.astype(OFFSETS_DTYPE)

def decode_positions(
  buffer:bytes,
  spec:Union[EntrySpec, int] = POSITIONS_FLOAT32,
  name:str = "positions",
  strict:bool = False,
) -> np.ndarray:
  """
  Interpret a little endian run of float16 or float32
  values as a flat float32 coordinate array.
  """
  if not isinstance(spec, EntrySpec):
    spec = POSITION_WIDTHS[int(spec)]
  if spec.kind != EntryKind.POSITIONS:
    raise ValueError(f"Not a positions entry: {spec}")

  buffer = _whole_elements(buffer, spec.itemsize, name, strict)
  if len(buffer) == 0:
    return np.zeros((0,), dtype=POSITIONS_DTYPE)

  if spec == POSITIONS_FLOAT16:
    halves = np.frombuffer(buffer, dtype=spec.dtype)
    return halffloat.decode_array(halves)

  return np.frombuffer(buffer, dtype=spec.dtype).astype(POSITIONS_DTYPE)
