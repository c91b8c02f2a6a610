"""
Sequential access to the members of a zip archive.

Two readers are provided. ZipArchive uses the central directory
through zipfile and needs a seekable source. StreamingZipArchive
walks local file headers front to back so it works on pipes and
sockets. Members written with a trailing data descriptor do not
state their size up front, those report a size of -1.
"""
from typing import Callable, Iterator, Union

import io
import os
import struct
import zipfile
import zlib

from .headers import FormatError

UNKNOWN_SIZE = -1

LOCAL_FILE_HEADER = 0x04034b50
DATA_DESCRIPTOR = 0x08074b50
ARCHIVE_END_SIGNATURES = (
  0x02014b50, # central directory
  0x06054b50, # end of central directory
  0x06064b50, # zip64 end of central directory
  0x05054b50, # digital signature
)

FLAG_ENCRYPTED = 0x1
FLAG_DATA_DESCRIPTOR = 0x8

STORED = 0
DEFLATED = 8

ZIP64_EXTRA = 0x0001

CHUNK_SIZE = 64 * 1024

class ArchiveEntry:
  """A single archive member. size is UNKNOWN_SIZE if not declared."""
  def __init__(self, name:str, size:int, reader:Callable[[], bytes], compressed_size:int = UNKNOWN_SIZE):
    self.name = name
    self.size = int(size)
    self.compressed_size = int(compressed_size)
    self._reader = reader
    self._contents = None

  def is_dir(self) -> bool:
    return self.name.endswith("/")

  def read(self) -> bytes:
    if self._contents is None:
      self._contents = self._reader()
    return self._contents

  def __repr__(self):
    return f"ArchiveEntry({self.name!r}, size={self.size})"

class ZipArchive:
  """Members of a seekable zip file in the order they are stored."""
  def __init__(self, filelike):
    try:
      self.zipfile = zipfile.ZipFile(filelike, 'r')
    except zipfile.BadZipFile as err:
      raise FormatError(f"Not a zip archive: {err}")
    self._owns = isinstance(filelike, (str, os.PathLike))

  def __iter__(self) -> Iterator[ArchiveEntry]:
    infos = sorted(self.zipfile.infolist(), key=lambda info: info.header_offset)
    for info in infos:
      yield ArchiveEntry(
        info.filename, info.file_size,
        reader=(lambda info=info: self._read(info)),
        compressed_size=info.compress_size,
      )

  def _read(self, info:zipfile.ZipInfo) -> bytes:
    try:
      return self.zipfile.read(info)
    except (zipfile.BadZipFile, zlib.error, NotImplementedError) as err:
      raise FormatError(f"{info.filename}: unable to read member: {err}")

  def close(self):
    if self._owns:
      self.zipfile.close()

  def __enter__(self):
    return self

  def __exit__(self, exc_type, exc_value, traceback):
    self.close()

class _PushbackReader:
  def __init__(self, stream):
    self.stream = stream
    self.buffer = b''

  def read(self, n:int) -> bytes:
    chunks = [ self.buffer[:n] ]
    self.buffer = self.buffer[n:]
    have = len(chunks[0])
    while have < n:
      chunk = self.stream.read(max(n - have, CHUNK_SIZE))
      if not chunk:
        break
      take = n - have
      chunks.append(chunk[:take])
      self.buffer += chunk[take:]
      have += min(len(chunk), take)
    return b''.join(chunks)

  def read_chunk(self) -> bytes:
    if self.buffer:
      chunk, self.buffer = self.buffer, b''
      return chunk
    return self.stream.read(CHUNK_SIZE)

  def unread(self, data:bytes):
    self.buffer = bytes(data) + self.buffer

  def read_exactly(self, n:int, what:str) -> bytes:
    data = self.read(n)
    if len(data) != n:
      raise FormatError(f"Unexpected end of archive while reading {what}. Wanted {n} bytes, got {len(data)}.")
    return data

def _parse_zip64_extra(extra:bytes, usize:int, csize:int):
  """Returns (usize, csize, is_zip64)."""
  pos = 0
  while pos + 4 <= len(extra):
    tag, length = struct.unpack('<HH', extra[pos:pos+4])
    body = extra[pos+4:pos+4+length]
    if tag == ZIP64_EXTRA:
      fields = []
      if usize == 0xffffffff:
        fields.append('usize')
      if csize == 0xffffffff:
        fields.append('csize')
      values = struct.unpack(f'<{len(fields)}Q', body[:8*len(fields)]) if fields else ()
      sizes = dict(zip(fields, values))
      return sizes.get('usize', usize), sizes.get('csize', csize), True
    pos += 4 + length
  return usize, csize, False

class StreamingZipArchive:
  """Forward-only iteration over the local headers of a zip stream."""
  def __init__(self, stream):
    self.stream = _PushbackReader(stream)

  def __iter__(self) -> Iterator[ArchiveEntry]:
    first = True
    while True:
      sig = self.stream.read(4)
      if len(sig) < 4:
        if first:
          raise FormatError("Not a zip archive: stream is empty or too short.")
        return

      signature = int.from_bytes(sig, 'little')
      if signature != LOCAL_FILE_HEADER:
        if first and signature not in ARCHIVE_END_SIGNATURES:
          raise FormatError(f"Not a zip archive. Got signature: {sig!r}")
        return
      first = False

      entry = self._next_entry()
      yield entry
      # members must be consumed in order before the next header
      entry.read()

  def _next_entry(self) -> ArchiveEntry:
    (
      version, flags, method, mtime, mdate,
      crc, csize, usize, name_len, extra_len
    ) = struct.unpack('<HHHHHIIIHH', self.stream.read_exactly(26, "local file header"))

    raw_name = self.stream.read_exactly(name_len, "member name")
    extra = self.stream.read_exactly(extra_len, "extra field")
    encoding = 'utf8' if flags & 0x800 else 'cp437'
    name = raw_name.decode(encoding)

    if flags & FLAG_ENCRYPTED:
      raise FormatError(f"{name}: encrypted members are not supported.")
    if method not in (STORED, DEFLATED):
      raise FormatError(f"{name}: unsupported compression method {method}.")

    usize, csize, zip64 = _parse_zip64_extra(extra, usize, csize)

    if flags & FLAG_DATA_DESCRIPTOR:
      if method == STORED:
        raise FormatError(f"{name}: stored members with a data descriptor cannot be streamed.")
      reader = lambda: self._read_until_eof(name, zip64)
      return ArchiveEntry(name, UNKNOWN_SIZE, reader)

    reader = lambda: self._read_sized(name, method, csize, usize, crc)
    return ArchiveEntry(name, usize, reader, compressed_size=csize)

  def _read_sized(self, name:str, method:int, csize:int, usize:int, crc:int) -> bytes:
    data = self.stream.read_exactly(csize, name)
    if method == DEFLATED:
      try:
        data = zlib.decompress(data, -zlib.MAX_WBITS)
      except zlib.error as err:
        raise FormatError(f"{name}: corrupt deflate stream: {err}")
    _check_crc(name, data, crc)
    return data

  def _read_until_eof(self, name:str, zip64:bool) -> bytes:
    decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
    out = []
    while not decompressor.eof:
      chunk = self.stream.read_chunk()
      if not chunk:
        raise FormatError(f"{name}: unexpected end of archive inside a compressed member.")
      try:
        out.append(decompressor.decompress(chunk))
      except zlib.error as err:
        raise FormatError(f"{name}: corrupt deflate stream: {err}")
    out.append(decompressor.flush())
    self.stream.unread(decompressor.unused_data)
    data = b''.join(out)

    # the signature of the data descriptor is optional
    sig = self.stream.read_exactly(4, f"{name} data descriptor")
    if int.from_bytes(sig, 'little') != DATA_DESCRIPTOR:
      self.stream.unread(sig)
    size_fmt = '<IQQ' if zip64 else '<III'
    crc, csize, usize = struct.unpack(
      size_fmt, self.stream.read_exactly(struct.calcsize(size_fmt), f"{name} data descriptor")
    )
    if usize != len(data):
      raise FormatError(f"{name}: data descriptor declares {usize} bytes but {len(data)} were decompressed.")
    _check_crc(name, data, crc)
    return data

def _check_crc(name:str, data:bytes, crc:int):
  computed = zlib.crc32(data) & 0xffffffff
  if computed != crc:
    raise FormatError(f"{name}: crc32 mismatch. Stored: {crc} Computed: {computed}")

def open_archive(filelike) -> Union[ZipArchive, StreamingZipArchive]:
  """Pick a zip reader suitable for a path, bytes, or file object."""
  if isinstance(filelike, (bytes, bytearray, memoryview)):
    return ZipArchive(io.BytesIO(bytes(filelike)))
  elif isinstance(filelike, (str, os.PathLike)):
    return ZipArchive(filelike)
  elif hasattr(filelike, 'read'):
    seekable = getattr(filelike, 'seekable', None)
    if seekable is not None and seekable():
      return ZipArchive(filelike)
    return StreamingZipArchive(filelike)
  raise TypeError(f"Unable to open {type(filelike).__name__} as an archive.")
