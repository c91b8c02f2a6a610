"""
Conversion between IEEE-754 half precision bit patterns
and single precision floats.

Half layout: 1 sign bit, 5 exponent bits (bias 15), 10 mantissa bits.
Single layout: 1 sign bit, 8 exponent bits (bias 127), 23 mantissa bits.

The widening is done directly on the bit fields: the half exponent
field is re-biased by 112 (0x1c000 when the field is kept in place
at bit 10) and the whole exponent|mantissa group is moved up 13 bits.
"""
import math
import struct

import numpy as np

from .headers import RangeError

HALF_MAX = 65504.0
# smallest finite magnitude that rounds to half infinity
HALF_OVERFLOW = 65520.0

def _float_to_bits(value:float) -> int:
  return struct.unpack('<I', struct.pack('<f', value))[0]

def _bits_to_float(bits:int) -> float:
  return struct.unpack('<f', struct.pack('<I', bits & 0xffffffff))[0]

def decode(bits:int) -> float:
  """Widen a 16-bit half precision pattern to a float."""
  bits = int(bits) & 0xffff
  sign = (bits & 0x8000) << 16
  mantissa = bits & 0x03ff
  exponent = bits & 0x7c00

  if exponent == 0x7c00:
    exponent = 0x3fc00 # inf / nan
  elif exponent != 0:
    exponent += 0x1c000
  elif mantissa != 0:
    # subnormal: shift until the implicit bit shows up
    exponent = 0x1c400
    while True:
      mantissa <<= 1
      exponent -= 0x400
      if mantissa & 0x400:
        break
    mantissa &= 0x3ff

  return _bits_to_float(sign | ((exponent | mantissa) << 13))

def encode(value:float) -> int:
  """
  Narrow a float to a 16-bit half precision pattern with
  round-half-up on the dropped mantissa bits.

  Raises RangeError if a finite value is too large in
  magnitude to be represented (it would round to infinity).
  Infinities and NaN map to half infinity and NaN.
  """
  value = float(value)
  if math.isfinite(value) and abs(value) >= HALF_OVERFLOW:
    raise RangeError(
      f"{value} is outside of the half precision range (+/-{HALF_MAX})."
    )

  fbits = _float_to_bits(value)
  sign = (fbits >> 16) & 0x8000
  val = (fbits & 0x7fffffff) + 0x1000

  if val >= 0x47800000:
    if (fbits & 0x7fffffff) >= 0x47800000:
      if val < 0x7f800000:
        return sign | 0x7c00
      return sign | 0x7c00 | ((fbits & 0x007fffff) >> 13)
    return sign | 0x7bff
  if val >= 0x38800000:
    return sign | ((val - 0x38000000) >> 13)
  if val < 0x33000000:
    return sign

  # subnormal half
  val = (fbits & 0x7fffffff) >> 23
  return sign | (
    (((fbits & 0x7fffff) | 0x800000) + (0x800000 >> (val - 102)))
    >> (126 - val)
  )

def frombytes(buffer:bytes) -> float:
  """Decode exactly two little endian bytes."""
  if len(buffer) != 2:
    raise ValueError(f"A half float is exactly two bytes. Got: {len(buffer)}")
  return decode(int.from_bytes(buffer, 'little'))

def decode_array(halves:np.ndarray) -> np.ndarray:
  """Vectorized decode of a uint16 array into float32."""
  halves = np.asarray(halves).astype(np.uint32, copy=False)
  sign = (halves & 0x8000) << 16
  mantissa = halves & 0x03ff
  exponent = halves & 0x7c00

  out_exponent = np.where(exponent == 0x7c00, 0x3fc00, exponent + 0x1c000).astype(np.uint32)
  out_exponent[exponent == 0] = 0

  subnormal = (exponent == 0) & (mantissa != 0)
  if np.any(subnormal):
    m = mantissa[subnormal]
    e = np.full(m.shape, 0x1c400, dtype=np.uint32)
    pending = np.ones(m.shape, dtype=bool)
    # at most 10 shifts are needed to normalize a 10 bit mantissa
    while np.any(pending):
      m[pending] <<= 1
      e[pending] -= 0x400
      pending &= (m & 0x400) == 0
    mantissa[subnormal] = m & 0x3ff
    out_exponent[subnormal] = e

  bits = sign | ((out_exponent | mantissa) << 13)
  return bits.astype(np.uint32).view(np.float32)
