from typing import Union

import gzip
import lzma
import os

import numpy as np

from .archive import StreamingZipArchive, open_archive
from .headers import TrxFile, TrxHeader
from .reader import decode, read_header, read_trx, read_trx_from_archive, read_trx_from_stream

def _open_compressed(filelike):
  if (
    isinstance(filelike, (str, os.PathLike))
    and os.path.splitext(filelike)[1] == '.gz'
  ):
    return gzip.open(filelike, 'rb')
  elif (
    isinstance(filelike, (str, os.PathLike))
    and os.path.splitext(filelike)[1] in ('.lzma', '.xz')
  ):
    return lzma.open(filelike, 'rb')
  return None

def load(filelike, **kwargs) -> TrxFile:
  """
  Load a TRX file from a file path, bytes, or file-like object.

  Paths ending in .gz, .xz, or .lzma are decompressed on the
  fly and read as a forward-only stream.
  """
  if isinstance(filelike, (bytes, bytearray, memoryview)):
    return decode(filelike, **kwargs)
  elif hasattr(filelike, 'read'):
    return read_trx_from_stream(filelike, **kwargs)

  f = _open_compressed(filelike)
  if f is None:
    return read_trx(filelike, **kwargs)

  # compressed files cannot seek from the end
  with f:
    return read_trx_from_archive(StreamingZipArchive(f), **kwargs)

def load_header(filelike) -> TrxHeader:
  """Load only the header of a TRX file."""
  if isinstance(filelike, (bytes, bytearray, memoryview)) or hasattr(filelike, 'read'):
    return read_header(open_archive(filelike))

  f = _open_compressed(filelike)
  if f is None:
    with open_archive(filelike) as archive:
      return read_header(archive)

  with f:
    return read_header(StreamingZipArchive(f))

def save_numpy(trx:TrxFile, filelike:Union[str, os.PathLike]):
  """
  Export decoded streamlines as a numpy .npz archive for inspection.

  Stores offsets (uint64, one per streamline plus a final sentinel),
  positions (float32, N x 3), dimensions, and voxel_to_rasmm.
  """
  lengths = trx.lengths()
  offsets = np.zeros((len(trx) + 1,), dtype=np.uint64)
  np.cumsum(lengths, out=offsets[1:])

  if len(trx):
    positions = np.concatenate([ s.points for s in trx ], axis=0)
  else:
    positions = np.zeros((0,3), dtype=np.float32)

  np.savez(
    filelike,
    offsets=offsets,
    positions=positions,
    dimensions=trx.header.dimensions,
    voxel_to_rasmm=trx.header.voxel_to_rasmm,
  )
