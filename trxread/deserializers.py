"""
Decoders for the numeric aggregates stored in header.json.

Writers store vectors and matrices either as JSON arrays
(flat or one level of rows) or as delimited strings such as
"1.0, 2.0, 3.0". Both shapes are accepted without knowing
the nesting in advance.
"""
from typing import Any, List

import numpy as np

from .headers import FormatError

VECTOR_SIZES = (2, 3, 4)

MATRIX_SHAPES = {
  4: (2, 2),
  9: (3, 3),
  12: (3, 4),
  16: (4, 4),
}

def _scalar_text(value:Any) -> str:
  if isinstance(value, bool) or value is None:
    raise FormatError(f"Expected a number. Got: {value!r}")
  if isinstance(value, str):
    return value.replace("[", "").replace("]", "")
  return str(value)

def _flatten(value:Any, max_depth:int) -> str:
  """Join the leaves of value into one comma separated string."""
  if not isinstance(value, (list, tuple)):
    return _scalar_text(value)

  parts = []
  for item in value:
    if isinstance(item, (list, tuple)):
      if max_depth <= 0:
        raise FormatError(f"Too many levels of nesting in {value!r}")
      parts.append(_flatten(item, max_depth - 1))
    else:
      parts.append(_scalar_text(item))
  return ",".join(parts)

def _split(text:str) -> List[str]:
  return [ elem.strip() for elem in text.split(",") if elem.strip() != "" ]

def _is_float_text(elem:str) -> bool:
  elem = elem.lower()
  return "." in elem or "e" in elem or "inf" in elem or "nan" in elem

def _parse(elements:List[str], dtype) -> np.ndarray:
  try:
    if np.dtype(dtype).kind == 'f':
      return np.array([ float(e) for e in elements ], dtype=dtype)
    return np.array([ int(e) for e in elements ], dtype=dtype)
  except (ValueError, OverflowError) as err:
    raise FormatError(f"Unable to parse {elements} as {np.dtype(dtype).name}: {err}")

def decode_vector(value:Any) -> np.ndarray:
  """
  Decode a 2, 3, or 4 component vector.

  If any component is written as a float, every component is
  parsed as float32, otherwise as int32.
  """
  elements = _split(_flatten(value, max_depth=0))

  if any(_is_float_text(e) for e in elements):
    vec = _parse(elements, np.float32)
  else:
    vec = _parse(elements, np.int32)

  if vec.size not in VECTOR_SIZES:
    raise FormatError(f"Unsupported vector dimension: {vec.size}. Value: {value!r}")

  return vec

def decode_matrix(value:Any) -> np.ndarray:
  """
  Decode a 2x2, 3x3, 3x4, or 4x4 float32 matrix.

  Rows may be nested one level deep or given flat,
  in which case they are read in row-major order.
  """
  elements = _split(_flatten(value, max_depth=1))
  flat = _parse(elements, np.float32)

  shape = MATRIX_SHAPES.get(flat.size, None)
  if shape is None:
    raise FormatError(f"Unsupported matrix size: {flat.size}. Value: {value!r}")

  return flat.reshape(shape)
