import io
import json
import time
import zipfile

import numpy as np

import trxread

class Sink:
  def __init__(self):
    self.buffer = io.BytesIO()

  def write(self, data):
    return self.buffer.write(data)

  def flush(self):
    pass

class Pipe:
  def __init__(self, binary):
    self.buffer = io.BytesIO(binary)

  def read(self, n=-1):
    return self.buffer.read(n)

  def seekable(self):
    return False

def synthetic(num_streamlines, mean_points, positions_dtype, streamed):
  lengths = np.random.poisson(mean_points, size=num_streamlines) + 2
  offsets = np.concatenate([[0], np.cumsum(lengths)[:-1]]).astype(np.uint64)
  positions = (np.random.random((int(lengths.sum()), 3)) * 100).astype(positions_dtype)

  header = json.dumps({
    "DIMENSIONS": [128, 128, 128],
    "NB_VERTICES": int(lengths.sum()),
    "NB_STREAMLINES": num_streamlines,
    "VOXEL_TO_RASMM": np.eye(4).tolist(),
  })
  suffix = "float16" if positions_dtype == np.float16 else "float32"

  target = Sink() if streamed else io.BytesIO()
  with zipfile.ZipFile(target, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
    zf.writestr("header.json", header)
    zf.writestr("offsets.uint64", offsets.tobytes())
    zf.writestr(f"positions.3.{suffix}", positions.tobytes())

  binary = target.buffer.getvalue() if streamed else target.getvalue()
  return binary, int(lengths.sum())

def run_sample(num_streamlines, mean_points, positions_dtype, N):
  for streamed in (False, True):
    binary, num_points = synthetic(num_streamlines, mean_points, positions_dtype, streamed)

    s = time.time()
    for i in range(N):
      trxread.decode(binary)
    seekable_time = (time.time() - s) / N

    s = time.time()
    for i in range(N):
      trxread.read_trx_from_stream(Pipe(binary))
    stream_time = (time.time() - s) / N

    mpts = lambda t: num_points / t / 1e6

    print(f"""
      {'data descriptors' if streamed else 'sized members'} ({len(binary)} bytes, {num_points} points)
      seekable :  {mpts(seekable_time):.2f} MPt/sec
      stream   :  {mpts(stream_time):.2f} MPt/sec
    """, flush=True)

N = 3

print("FLOAT32 POSITIONS, 10k streamlines x ~100 points")
run_sample(10000, 100, np.float32, N)

print("FLOAT16 POSITIONS, 10k streamlines x ~100 points")
run_sample(10000, 100, np.float16, N)

print("MANY SHORT STREAMLINES, 100k x ~5 points")
run_sample(100000, 5, np.float32, N)
