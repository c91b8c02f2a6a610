from typing import Iterable, List, Optional, Tuple, Union

import logging
import os
import time

import numpy as np

from .archive import ArchiveEntry, UNKNOWN_SIZE, open_archive
from .binary import decode_offsets, decode_positions
from .entries import EntryKind, EntrySpec, classify, core_name
from .headers import (
  FormatError, IncompleteInputError, SizeInferenceError,
  TrxFile, TrxHeader,
)
from .reconstruct import reconstruct

logger = logging.getLogger(__name__)

class _Demultiplexer:
  """Collects header, offsets and positions from archive members."""
  def __init__(self, strict:bool = False, defer:bool = True):
    self.strict = strict
    self.defer = defer
    self.header:Optional[TrxHeader] = None
    self.offsets:Optional[np.ndarray] = None
    self.positions:Optional[np.ndarray] = None
    self.seen = {}
    self.pending:List[Tuple[str, EntrySpec, bytes]] = []

  def feed(self, entry:ArchiveEntry):
    if entry.is_dir():
      return

    logger.debug(f"Found entry {entry.name} with {entry.size}/{entry.compressed_size} bytes")
    spec = classify(entry.name)
    if spec is None:
      logger.debug(f"Ignoring entry {entry.name}")
      return

    if spec.kind in self.seen:
      raise FormatError(
        f"Duplicate {spec.kind.name.lower()} entry {entry.name}, "
        f"already read {self.seen[spec.kind]}."
      )
    self.seen[spec.kind] = entry.name

    contents = entry.read()
    logger.debug(f"Read {len(contents)}/{entry.size} bytes")

    if spec.kind == EntryKind.HEADER:
      self._decode_header(contents)
      return

    if entry.size == UNKNOWN_SIZE:
      if self.header is None:
        if not self.defer:
          raise SizeInferenceError(
            f"{entry.name} does not declare its size and the header "
            f"has not been read yet. Unable to determine count."
          )
        logger.warning(f"{entry.name} does not declare its size, deferring until the header is read.")
        self.pending.append((entry.name, spec, contents))
        return
      self._decode_payload(entry.name, spec, self._fallback_size(entry.name, spec), contents)
    else:
      self._decode_payload(entry.name, spec, entry.size, contents)

  def _decode_header(self, contents:bytes):
    logger.debug(f"Header is {bytes(contents).decode('utf8', errors='replace')}")
    self.header = TrxHeader.fromjson(contents)
    logger.info(
      f"File has {self.header.streamline_count} streamlines with "
      f"{self.header.vertex_count} vertices, dimensions are "
      f"{tuple(int(d) for d in self.header.dimensions)}."
    )

  def _fallback_size(self, name:str, spec:EntrySpec) -> int:
    logger.warning(f"{name} did not specify its size, using header information.")
    size = spec.expected_nbytes(self.header)
    logger.warning(f"Byte size from header is {size}")
    return size

  def _decode_payload(self, name:str, spec:EntrySpec, size:int, contents:bytes):
    if len(contents) < size:
      msg = f"{name}: expected {size} bytes but only {len(contents)} are available."
      if self.strict:
        raise FormatError(msg)
      logger.warning(msg)
    elif len(contents) > size:
      logger.warning(f"{name}: {len(contents) - size} bytes past the expected {size} are ignored.")
      contents = contents[:size]

    if spec.kind == EntryKind.OFFSETS:
      self.offsets = decode_offsets(contents, spec, name=name, strict=self.strict)
      logger.info(f"Read {self.offsets.size} offsets ({spec.itemsize * 8} bit)")
    else:
      self.positions = decode_positions(contents, spec, name=name, strict=self.strict)
      logger.info(f"Read {self.positions.size // 3} vertices ({spec.itemsize * 8} bit)")
      if self.positions.size % 3:
        msg = f"{name}: {self.positions.size} coordinates do not form whole (x,y,z) triples."
        if self.strict:
          raise FormatError(msg)
        logger.warning(msg)

  def finish(self):
    if self.pending:
      if self.header is None:
        names = ", ".join(name for name, _, _ in self.pending)
        raise SizeInferenceError(
          f"Unable to determine count for {names}: "
          f"the archive has no {TrxHeader.FILENAME}."
        )
      for name, spec, contents in self.pending:
        self._decode_payload(name, spec, self._fallback_size(name, spec), contents)
      self.pending = []

    missing = []
    if self.header is None:
      missing.append(TrxHeader.FILENAME)
    if self.offsets is None:
      missing.append("offsets")
    if self.positions is None:
      missing.append("positions")

    if missing:
      raise IncompleteInputError(
        f"File incomplete, missing {', '.join(missing)}. Header: {self.header}",
        header=self.header,
        missing=missing,
      )

def read_trx_from_archive(
  archive:Iterable[ArchiveEntry],
  strict:bool = False,
  defer:bool = True,
  progress:bool = False,
) -> TrxFile:
  """
  Decode a TRX file from an iterable of archive entries.

  strict: raise FormatError on truncated or oversized payloads
    instead of logging a warning.
  defer: buffer members of unknown size that arrive before the
    header and decode them once the archive is exhausted. If False,
    such a member raises SizeInferenceError immediately.
  progress: show a progress bar while building streamlines.
  """
  start = time.perf_counter()

  demux = _Demultiplexer(strict=strict, defer=defer)
  for entry in archive:
    demux.feed(entry)
  demux.finish()

  header = demux.header
  logger.debug(
    f"Have {demux.offsets.size} offsets and {demux.positions.size // 3} "
    f"vertices ({demux.positions.size} floats)"
  )
  streamlines = reconstruct(
    demux.offsets, demux.positions,
    header.streamline_count, progress=progress,
  )
  trx = TrxFile(header, streamlines)

  if trx.nb_vertices != header.vertex_count:
    logger.warning(
      f"Streamlines hold {trx.nb_vertices} vertices "
      f"but the header declares {header.vertex_count}."
    )

  duration = time.perf_counter() - start
  logger.info(f"Created {len(trx)} streamlines in {duration * 1000:.2f}ms.")
  return trx

def read_trx_from_stream(stream, **kwargs) -> TrxFile:
  """Decode a TRX file from an open binary file object or pipe."""
  return read_trx_from_archive(open_archive(stream), **kwargs)

def read_trx(filename:Union[str, os.PathLike], **kwargs) -> TrxFile:
  """Decode a TRX file from a path."""
  logger.info(f"Reading from {filename}")
  with open_archive(filename) as archive:
    return read_trx_from_archive(archive, **kwargs)

def decode(binary:bytes, **kwargs) -> TrxFile:
  """Decode a TRX file held in memory."""
  return read_trx_from_archive(open_archive(binary), **kwargs)

def read_header(archive:Iterable[ArchiveEntry]) -> TrxHeader:
  """Decode only header.json, skipping the binary members."""
  for entry in archive:
    if entry.is_dir():
      continue
    if core_name(entry.name) == TrxHeader.FILENAME:
      return TrxHeader.fromjson(entry.read())

  raise IncompleteInputError(
    f"File incomplete, missing {TrxHeader.FILENAME}.",
    missing=[ TrxHeader.FILENAME ],
  )
