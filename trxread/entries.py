from typing import NamedTuple, Optional
from enum import IntEnum

import posixpath

import numpy as np

from .headers import FormatError, TrxHeader

class EntryKind(IntEnum):
  HEADER = 0
  OFFSETS = 1
  POSITIONS = 2

class EntrySpec(NamedTuple):
  kind:EntryKind
  dtype:Optional[np.dtype] = None

  @property
  def itemsize(self) -> int:
    if self.dtype is None:
      return 1
    return self.dtype.itemsize

  def expected_nbytes(self, header:TrxHeader) -> int:
    if self.kind == EntryKind.OFFSETS:
      return header.offsets_nbytes(self.itemsize)
    elif self.kind == EntryKind.POSITIONS:
      return header.positions_nbytes(self.itemsize)
    raise ValueError(f"{self.kind.name} entries do not have a derived size.")

HEADER = EntrySpec(EntryKind.HEADER)
OFFSETS_UINT32 = EntrySpec(EntryKind.OFFSETS, np.dtype('<u4'))
OFFSETS_UINT64 = EntrySpec(EntryKind.OFFSETS, np.dtype('<u8'))
POSITIONS_FLOAT16 = EntrySpec(EntryKind.POSITIONS, np.dtype('<u2'))
POSITIONS_FLOAT32 = EntrySpec(EntryKind.POSITIONS, np.dtype('<f4'))

# per-streamline, per-vertex and group data live in these
DATA_DIRECTORIES = ("dps", "dpv", "dpg", "groups")

def core_name(name:str) -> Optional[str]:
  """
  Final path component of a member that may hold a core part.

  Core members sit at the root of the archive or inside a
  single top level folder (e.g. bundle/header.json), never
  inside one of the DATA_DIRECTORIES. Returns None otherwise.
  """
  parts = posixpath.normpath(name).split("/")
  if len(parts) > 2 or (len(parts) == 2 and parts[0] in DATA_DIRECTORIES):
    return None
  return parts[-1]

def classify(name:str) -> Optional[EntrySpec]:
  """
  Decide how an archive member is decoded from its name.

  Returns None for members the reader does not use.
  """
  basename = core_name(name)
  if basename is None:
    return None

  if basename == TrxHeader.FILENAME:
    return HEADER
  elif basename.startswith("offsets."):
    if basename.endswith("uint32"):
      return OFFSETS_UINT32
    return OFFSETS_UINT64
  elif basename.startswith("positions.3"):
    if basename.endswith("float16"):
      return POSITIONS_FLOAT16
    elif basename.endswith("float32"):
      return POSITIONS_FLOAT32
    raise FormatError(f"{name}: only float16 and float32 positions are supported.")

  return None
