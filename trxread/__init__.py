"""A reader for TRX tractography files.

A TRX file is a zip archive holding a JSON header
and flat binary arrays:

  header.json            DIMENSIONS, NB_VERTICES, NB_STREAMLINES,
                         VOXEL_TO_RASMM
  offsets.uint32|uint64  index of the first point of each streamline
  positions.3.float16|float32
                         x,y,z of every point, all streamlines
                         concatenated

Streamline i is the run of points from offsets[i] up to
offsets[i+1] (or the end of the positions for the last
one). The reader demultiplexes the archive members in the
order they are stored, decodes each binary array into
numpy, and copies every run out into its own Streamline.

Half precision positions are widened to float32 with
exact bit manipulation (see trxread.halffloat).

Archives that were written to a pipe store their member
sizes after the data. Those are sized from the header
counts, and members that arrive before the header are
held back until the end of the archive.
"""
from .archive import ArchiveEntry, StreamingZipArchive, ZipArchive, open_archive
from .binary import decode_offsets, decode_positions
from .deserializers import decode_matrix, decode_vector
from .entries import EntryKind, EntrySpec, classify
from .headers import (
	TrxError, FormatError, IncompleteInputError,
	SizeInferenceError, ConsistencyError, RangeError,
	TrxHeader, TrxFile, Streamline,
)
from .reader import (
	decode, read_header, read_trx,
	read_trx_from_archive, read_trx_from_stream,
)
from .reconstruct import reconstruct
from .util import load, load_header, save_numpy
from . import halffloat

__version__ = "0.1.0"
