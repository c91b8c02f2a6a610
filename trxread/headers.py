from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Union

import json
from types import MappingProxyType

import numpy as np

class TrxError(Exception):
  pass

class FormatError(TrxError):
  pass

class IncompleteInputError(TrxError):
  """Raised when the archive ends before every required part was seen."""
  def __init__(self, message:str, header:Optional["TrxHeader"] = None, missing:Sequence[str] = ()):
    super().__init__(message)
    self.header = header
    self.missing = tuple(missing)

class SizeInferenceError(TrxError):
  pass

class ConsistencyError(TrxError):
  pass

class RangeError(TrxError, ValueError):
  pass

OFFSETS_DTYPE = np.uint64
POSITIONS_DTYPE = np.float32

def _frozen(array:np.ndarray) -> np.ndarray:
  array.flags.writeable = False
  return array

class TrxHeader:
  FILENAME = "header.json"
  REQUIRED_KEYS = (
    "DIMENSIONS", "NB_VERTICES",
    "NB_STREAMLINES", "VOXEL_TO_RASMM",
  )
  __slots__ = (
    "dimensions", "vertex_count", "streamline_count",
    "voxel_to_rasmm", "raw",
  )

  def __init__(
    self,
    dimensions:Sequence[int],
    vertex_count:int,
    streamline_count:int,
    voxel_to_rasmm:np.ndarray,
    raw:Optional[Dict[str, Any]] = None,
  ):
    vertex_count = int(vertex_count)
    streamline_count = int(streamline_count)
    if vertex_count < 0 or streamline_count < 0:
      raise FormatError(
        f"Counts must be non-negative. "
        f"NB_VERTICES: {vertex_count} NB_STREAMLINES: {streamline_count}"
      )

    init = lambda name, value: object.__setattr__(self, name, value)
    init("dimensions", _frozen(np.array(dimensions, dtype=np.int32)))
    init("vertex_count", vertex_count)
    init("streamline_count", streamline_count)
    init("voxel_to_rasmm", _frozen(np.array(voxel_to_rasmm, dtype=np.float32)))
    init("raw", MappingProxyType(dict(raw) if raw is not None else {}))

  def __setattr__(self, name, value):
    raise AttributeError(f"{type(self).__name__} is immutable.")

  @classmethod
  def fromjson(kls, contents:Union[bytes, str]) -> "TrxHeader":
    from .deserializers import decode_vector, decode_matrix

    if isinstance(contents, (bytes, bytearray, memoryview)):
      try:
        contents = bytes(contents).decode("utf8")
      except UnicodeDecodeError as err:
        raise FormatError(f"{kls.FILENAME} is not valid UTF-8: {err}")

    try:
      raw = json.loads(contents)
    except json.JSONDecodeError as err:
      raise FormatError(f"{kls.FILENAME} is not valid JSON: {err}")

    if not isinstance(raw, dict):
      raise FormatError(f"{kls.FILENAME} must contain a JSON object. Got: {type(raw).__name__}")

    missing = [ key for key in kls.REQUIRED_KEYS if key not in raw ]
    if missing:
      raise FormatError(f"{kls.FILENAME} is missing required keys: {', '.join(missing)}")

    dimensions = decode_vector(raw["DIMENSIONS"])
    if dimensions.shape != (3,) or dimensions.dtype.kind != 'i':
      raise FormatError(f"DIMENSIONS must be 3 integers. Got: {raw['DIMENSIONS']}")

    affine = decode_matrix(raw["VOXEL_TO_RASMM"])
    if affine.shape != (4,4):
      raise FormatError(f"VOXEL_TO_RASMM must be a 4x4 matrix. Got shape: {affine.shape}")

    return TrxHeader(
      dimensions=dimensions,
      vertex_count=_count(raw, "NB_VERTICES"),
      streamline_count=_count(raw, "NB_STREAMLINES"),
      voxel_to_rasmm=affine,
      raw=raw,
    )

  def offsets_nbytes(self, itemsize:int) -> int:
    """Expected size of the offsets member when the archive omits it."""
    return self.streamline_count * int(itemsize)

  def positions_nbytes(self, itemsize:int) -> int:
    """Expected size of the positions member when the archive omits it."""
    return self.vertex_count * 3 * int(itemsize)

  def details(self) -> str:
    affine = "\n                   ".join(
      " ".join(f"{v: .4f}" for v in row) for row in self.voxel_to_rasmm
    )
    return f"""
    dimensions:    {tuple(int(d) for d in self.dimensions)}
    vertices:      {self.vertex_count}
    streamlines:   {self.streamline_count}
    voxel_to_rasmm:
                   {affine}
    """

  def __eq__(self, other) -> bool:
    if not isinstance(other, TrxHeader):
      return NotImplemented
    return (
      np.array_equal(self.dimensions, other.dimensions)
      and self.vertex_count == other.vertex_count
      and self.streamline_count == other.streamline_count
      and np.array_equal(self.voxel_to_rasmm, other.voxel_to_rasmm)
    )

  def __repr__(self):
    return str({
      "dimensions": self.dimensions.tolist(),
      "vertex_count": self.vertex_count,
      "streamline_count": self.streamline_count,
      "voxel_to_rasmm": self.voxel_to_rasmm.tolist(),
    })

def _count(raw:Dict[str, Any], key:str) -> int:
  value = raw[key]
  if isinstance(value, bool):
    raise FormatError(f"{key} must be an integer. Got: {value}")
  if isinstance(value, str):
    value = value.strip()
  elif isinstance(value, float) and not value.is_integer():
    raise FormatError(f"{key} must be an integer. Got: {value}")
  try:
    return int(value)
  except (TypeError, ValueError):
    raise FormatError(f"{key} must be an integer. Got: {value!r}")

class Streamline:
  """A single polyline. Owns a flat (x,y,z,x,y,z,...) float32 copy."""
  __slots__ = ("vertices",)

  def __init__(self, vertices:np.ndarray):
    vertices = np.array(vertices, dtype=POSITIONS_DTYPE, copy=True).reshape(-1)
    if vertices.size % 3 != 0:
      raise FormatError(f"Streamline vertices must be a multiple of 3. Got: {vertices.size}")
    object.__setattr__(self, "vertices", _frozen(vertices))

  def __setattr__(self, name, value):
    raise AttributeError(f"{type(self).__name__} is immutable.")

  @property
  def points(self) -> np.ndarray:
    return self.vertices.reshape((-1, 3))

  def __len__(self) -> int:
    return self.vertices.size // 3

  def __eq__(self, other) -> bool:
    if not isinstance(other, Streamline):
      return NotImplemented
    return np.array_equal(self.vertices, other.vertices)

  def __repr__(self):
    return f"Streamline(points={len(self)})"

class TrxFile:
  """Decoded TRX contents: the header plus its streamlines in file order."""
  __slots__ = ("_header", "_streamlines")

  def __init__(self, header:TrxHeader, streamlines:Sequence[Streamline]):
    object.__setattr__(self, "_header", header)
    object.__setattr__(self, "_streamlines", tuple(streamlines))

  def __setattr__(self, name, value):
    raise AttributeError(f"{type(self).__name__} is immutable.")

  @property
  def header(self) -> TrxHeader:
    return self._header

  @property
  def streamlines(self) -> Tuple[Streamline, ...]:
    return self._streamlines

  @property
  def nb_vertices(self) -> int:
    return sum(len(s) for s in self._streamlines)

  def lengths(self) -> np.ndarray:
    """Number of points in each streamline."""
    return np.fromiter(
      (len(s) for s in self._streamlines),
      dtype=np.uint64, count=len(self._streamlines)
    )

  def __len__(self) -> int:
    return len(self._streamlines)

  def __iter__(self) -> Iterator[Streamline]:
    return iter(self._streamlines)

  def __getitem__(self, i):
    return self._streamlines[i]

  def __repr__(self):
    return f"TrxFile(streamlines={len(self)}, vertices={self.nb_vertices})"
