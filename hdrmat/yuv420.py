"""Planar YUV 4:2:0 images with an interleaved chroma plane (NV12 layout)."""

from __future__ import annotations

import os
from typing import Union

import numpy as np

from hdrmat.jpeg import encode_yuv420

_PathLike = Union[str, "os.PathLike[str]"]


def _as_uint8(data) -> np.ndarray:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return np.frombuffer(bytes(data), dtype=np.uint8)
    return np.asarray(data, dtype=np.uint8)


def _plane(data, shape: tuple[int, int], name: str) -> np.ndarray:
    arr = _as_uint8(data)
    if arr.shape != shape:
        raise ValueError(f"{name} plane must have shape {shape}, got {arr.shape}")
    return arr


def huv2_to_uv4_line(line, width: int) -> np.ndarray:
    """Widen one interleaved UV row of ``width // 2`` pairs to ``width`` pairs.

    Inner samples are ``3*a + b`` and ``a + 3*b`` of neighbouring pairs, the
    two end samples are four times the end pairs, so every output is scaled
    by four.  Returns ``2 * width`` interleaved uint16 values.
    """
    if width < 2 or width % 2:
        raise ValueError("width must be an even number of at least 2")
    values = _as_uint8(line).reshape(-1)
    if values.size < width:
        raise ValueError("line holds fewer than width samples")
    pairs = values[:width].astype(np.int32).reshape(width // 2, 2)
    out = np.empty((width, 2), dtype=np.int32)
    out[0] = pairs[0] << 2
    out[-1] = pairs[-1] << 2
    a, b = pairs[:-1], pairs[1:]
    out[1:-1:2] = 3 * a + b
    out[2:-1:2] = a + 3 * b
    return out.astype(np.uint16).reshape(-1)


class Yuv420Image:
    """A full-size Y plane followed by a half-size interleaved U/V plane.

    Width and height are rounded down to even numbers.
    """

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise ValueError("image dimensions must not be negative")
        self.width = (width >> 1) << 1
        self.height = (height >> 1) << 1
        w, h = self.width, self.height
        self.data = np.zeros(w * h * 3 // 2, dtype=np.uint8)
        self._y = self.data[: w * h].reshape(h, w)
        self._uv = self.data[w * h :].reshape(h // 2, w // 2, 2)

    @classmethod
    def from_data(cls, width: int, height: int, data) -> "Yuv420Image":
        """Create an image from a Y plane followed by the interleaved UV plane."""
        image = cls(width, height)
        values = _as_uint8(data).reshape(-1)
        if values.size < image.data.size:
            raise ValueError("data is smaller than width * height * 3 / 2")
        image.data[:] = values[: image.data.size]
        return image

    def clone(self) -> "Yuv420Image":
        """An independent copy."""
        image = Yuv420Image(self.width, self.height)
        image.data[:] = self.data
        return image

    @classmethod
    def from_yuv444(cls, image) -> "Yuv420Image":
        """Subsample a ``(height, width, 3)`` YUV 4:4:4 array.

        Chroma of each 2x2 block is the truncated mean of its four samples.
        """
        arr = np.asarray(image, dtype=np.uint8)
        if arr.ndim != 3 or arr.shape[2] < 3:
            raise ValueError("expected an array of shape (height, width, 3)")
        out = cls(arr.shape[1], arr.shape[0])
        w, h = out.width, out.height
        src = arr[:h, :w]
        out._y[:] = src[..., 0]
        chroma = src[..., 1:3].astype(np.int32).reshape(h // 2, 2, w // 2, 2, 2)
        out._uv[:] = (chroma.sum(axis=(1, 3)) >> 2).astype(np.uint8)
        return out

    def to_yuv444(self) -> np.ndarray:
        """Upsample chroma bilinearly to a ``(height, width, 3)`` uint8 array."""
        w, h = self.width, self.height
        if w < 2 or h < 2:
            raise ValueError("image must be at least 2 x 2")
        uv4 = np.stack(
            [huv2_to_uv4_line(row, w).reshape(w, 2) for row in self._uv.reshape(h // 2, w)]
        ).astype(np.int32)
        chroma = np.empty((h, w, 2), dtype=np.int32)
        chroma[0] = uv4[0] >> 2
        chroma[h - 1] = uv4[-1] >> 2
        if h > 2:
            a, b = uv4[:-1], uv4[1:]
            chroma[1 : h - 1 : 2] = (3 * a + b + 8) >> 4
            chroma[2 : h - 1 : 2] = (a + 3 * b + 8) >> 4
        out = np.empty((h, w, 3), dtype=np.uint8)
        out[..., 0] = self._y
        out[..., 1:] = chroma.astype(np.uint8)
        return out

    def y_plane(self) -> np.ndarray:
        """A copy of the luma plane, ``(height, width)``."""
        return self._y.copy()

    def u_plane(self) -> np.ndarray:
        """A copy of the U plane, ``(height / 2, width / 2)``."""
        return self._uv[..., 0].copy()

    def v_plane(self) -> np.ndarray:
        """A copy of the V plane, ``(height / 2, width / 2)``."""
        return self._uv[..., 1].copy()

    def _chroma_shape(self) -> tuple[int, int]:
        return self.height // 2, self.width // 2

    def update_uv(self, u_plane, v_plane) -> None:
        """Replace both chroma planes."""
        shape = self._chroma_shape()
        u = _plane(u_plane, shape, "U")
        v = _plane(v_plane, shape, "V")
        self._uv[..., 0] = u
        self._uv[..., 1] = v

    def update_yuv(self, y_plane, u_plane, v_plane) -> None:
        """Replace all three planes."""
        y = _plane(y_plane, (self.height, self.width), "Y")
        self.update_uv(u_plane, v_plane)
        self._y[:] = y

    def update_y(self, y_plane) -> None:
        """Replace the luma plane."""
        self._y[:] = _plane(y_plane, (self.height, self.width), "Y")

    def combine_ycbcr(self, y_plane) -> np.ndarray:
        """Pair a half-size luma plane with this image's chroma.

        Returns ``(h, w, 3)`` samples ordered Y, V, U, where ``(h, w)`` is the
        shape of ``y_plane`` and may not exceed the chroma plane.
        """
        y = _as_uint8(y_plane)
        if y.ndim != 2:
            raise ValueError("Y plane must be two-dimensional")
        h, w = y.shape
        ch, cw = self._chroma_shape()
        if h > ch or w > cw:
            raise ValueError("Y plane is larger than the chroma plane")
        out = np.empty((h, w, 3), dtype=np.uint8)
        out[..., 0] = y
        out[..., 1] = self._uv[:h, :w, 1]
        out[..., 2] = self._uv[:h, :w, 0]
        return out

    def to_jpeg(self, quality: int = 100) -> bytes:
        """Encode the image as a baseline JPEG stream."""
        return encode_yuv420(
            self._y.tobytes(),
            self.u_plane().tobytes(),
            self.v_plane().tobytes(),
            self.width,
            self.height,
            quality,
        )

    def save_jpeg(self, path: _PathLike, quality: int = 100) -> None:
        """Write the JPEG encoding of the image to ``path``."""
        encoded = self.to_jpeg(quality)
        with open(path, "wb") as handle:
            handle.write(encoded)