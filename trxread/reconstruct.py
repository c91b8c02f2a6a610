from typing import List

import logging

import numpy as np
from tqdm import tqdm

from .headers import ConsistencyError, FormatError, Streamline

logger = logging.getLogger(__name__)

def point_ranges(offsets:np.ndarray, num_points:int, streamline_count:int) -> np.ndarray:
  """
  Convert offsets into (begin, end) point ranges, end exclusive.

  A range ends at the next offset when there is one, otherwise
  at the end of the points. Offsets past streamline_count only
  serve as the end of the last range.
  """
  offsets = np.asarray(offsets, dtype=np.uint64).reshape(-1)
  n = min(int(streamline_count), offsets.size)
  if n == 0:
    return np.zeros((0,2), dtype=np.uint64)

  ends = np.full((n,), num_points, dtype=np.uint64)
  m = min(n, offsets.size - 1)
  ends[:m] = offsets[1:m+1]

  if offsets.size > n + 1:
    logger.debug(
      f"Ignoring {offsets.size - n - 1} offsets past the declared "
      f"{streamline_count} streamlines."
    )

  return np.stack([ offsets[:n], ends ], axis=1)

def reconstruct(
  offsets:np.ndarray,
  coordinates:np.ndarray,
  streamline_count:int,
  progress:bool = False,
) -> List[Streamline]:
  """
  Slice the flat coordinate array into streamlines.

  Streamline i spans points offsets[i] up to (not including)
  offsets[i+1], or the end of the coordinates for the last one.
  Each streamline receives a copy of its points.
  """
  coordinates = np.asarray(coordinates, dtype=np.float32).reshape(-1)
  num_points = coordinates.size // 3
  ranges = point_ranges(offsets, num_points, streamline_count)

  if ranges.size and int(ranges.max()) > num_points:
    bad = int(np.argmax(np.any(ranges > num_points, axis=1)))
    raise FormatError(
      f"Streamline #{bad} spans points {int(ranges[bad,0])}-{int(ranges[bad,1])} "
      f"but there are only {num_points} points."
    )

  streamlines = []
  for i in tqdm(range(len(ranges)), disable=(not progress), desc="Streamlines"):
    begin, end = int(ranges[i,0]), int(ranges[i,1])
    if end <= begin:
      logger.warning(
        f"Streamline #{i} has zero length. Range is {begin}-{end}."
      )
      end = begin
    streamlines.append(Streamline(coordinates[3*begin:3*end]))

  if len(streamlines) != streamline_count:
    raise ConsistencyError(
      f"Expected {streamline_count} streamlines but the offsets "
      f"only describe {len(streamlines)}."
    )

  return streamlines
