# hdrmat

hdrmat is a small image-processing toolkit built on numpy.

## What it provides

- **`hdrmat.int_image.MultiIntImage`**: an int32 image of shape
  `(height, width, channels)` with a white level (`max_value`) and black
  level (`blc`). It converts BGR+H data (three colour channels plus a shared
  offset channel) to 8-bit BGR with error diffusion (`bgrh_to_bgr8`), to
  16-bit BGR (`bgrh_to_bgr16`), picks and dithers chosen channels
  (`bgrh_channels_to_bgr8`), and scales one channel to 8-bit gray
  (`single_channel_to_gray`).
- **`hdrmat.short_image.MultiShortImage`**: an int16 image with a bit depth
  of at most 15. Besides the BGR+H conversions (`bgrh_to_bgr8`, `bgrh_to_bgr`,
  `bgrh_to_rgb16`, `bgrh_channels_to_bgr8`, `single_channel_to_gray`) it
  offers a rectangle histogram (`rect_histogram`), a box mean computed from
  an integral image (`block_average`), and in-place `apply_weight` and
  `add_image`.
- **`hdrmat.yuv420.Yuv420Image`**: a Y plane followed by an interleaved U/V
  plane (NV12 layout). It subsamples from and upsamples to YUV 4:4:4 arrays
  (`from_yuv444`, `to_yuv444`), exposes and replaces planes (`y_plane`,
  `u_plane`, `v_plane`, `update_y`, `update_uv`, `update_yuv`), and encodes
  itself as JPEG (`to_jpeg`, `save_jpeg`). `huv2_to_uv4_line` widens one
  chroma row.
- **`hdrmat.matrix`**: a dense `Matrix` with in-place LU decomposition
  (`lu_decomposition`) and inversion (`inversed`), a
  `singular_value_decomposition` returning `(u, w, v)`, and `dlt_to_h`,
  which estimates the 3×3 homography taking one point list onto another
  by the normalised direct linear transform.
- **`hdrmat.mempool`**: `MemPool`, a reference-counted first-fit allocator
  over simulated addresses. Sizes are rounded up to 64 bytes, freed blocks
  merge with free neighbours, and a region that becomes wholly free is
  dropped. Large requests go to a separate list. `blocks` and `used_bytes`
  report its state.
- **JPEG encoding** (`hdrmat.jpeg`, `hdrmat.jpeg_core`, `hdrmat.jpeg_tables`):
  `encode_yuv420` writes full-size Y and half-size U, V planes as a baseline
  JFIF stream using the standard quantisation and Huffman tables. The
  building blocks (DCTs, quantisation tables, `BitWriter`, segment writers,
  `encode_block`) are public too.

## Installation

```
pip install .
```

To install the test tools as well:

```
pip install .[test]
```

## Examples

Encode a YUV420 image to JPEG:

```python
import numpy as np
from hdrmat.yuv420 import Yuv420Image

width, height = 16, 16
data = np.full(width * height * 3 // 2, 128, dtype=np.uint8)
image = Yuv420Image.from_data(width, height, data)
jpeg_bytes = image.to_jpeg(90)
image.save_jpeg("out.jpg", 90)
```

Estimate the homography taking the second point list onto the first
(at least four pairs are needed):

```python
from hdrmat.matrix import dlt_to_h

ref = [(0, 0), (1, 0), (1, 1), (0, 1)]
moved = [(2, 3), (3, 3), (3, 4), (2, 4)]
h = dlt_to_h(ref, moved)
print(h.format_rows("%10.4f"))
```

Allocate from the memory pool:

```python
from hdrmat.mempool import MemPool

pool = MemPool(big_threshold=1 << 30, used_big_size=1 << 30)
pool.create(1 << 20)
address = pool.allocate(1000)   # reserves 1024 bytes
pool.deallocate(address)
pool.release()
```

## Limits

- The JPEG encoder only writes; there is no decoder, and images are not read
  from or written to bitmap files.
- `MemPool` hands out addresses in a simulated address space; it does not
  provide real memory buffers.
- There is no command-line tool; the package is used as a library.

## Running the tests

```
pytest
```