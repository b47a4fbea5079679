"""Multi-channel signed 16-bit images used for edges, weights and BGRH data."""

from __future__ import annotations

import random
from typing import Optional, Sequence

import numpy as np

_U32 = 1 << 32
_RGB16_MAX = 32767


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _trunc_div_array(values: np.ndarray, divisor: int) -> np.ndarray:
    quotient = np.abs(values) // abs(divisor)
    return np.where((values < 0) != (divisor < 0), -quotient, quotient)


def _to_int16(values: np.ndarray) -> np.ndarray:
    return (((values + 0x8000) & 0xFFFF) - 0x8000).astype(np.int16)


class MultiShortImage:
    """A ``height`` x ``width`` image of ``channels`` int16 samples per pixel.

    ``bits`` (at most 15) fixes ``max_value``; ``blc`` is the black level.
    """

    def __init__(self, width: int, height: int, channels: int = 1, bits: int = 15) -> None:
        if width < 0 or height < 0:
            raise ValueError("image dimensions must not be negative")
        if channels < 1:
            raise ValueError("an image needs at least one channel")
        if bits < 1:
            raise ValueError("bits must be at least 1")
        self.data = np.zeros((height, width, channels), dtype=np.int16)
        self.bits = min(bits, 15)
        self.max_value = (1 << self.bits) - 1
        self.blc = 0

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def channels(self) -> int:
        return self.data.shape[2]

    @classmethod
    def from_data(
        cls, width: int, height: int, channels: int, data: Sequence[int]
    ) -> "MultiShortImage":
        """Create an image from ``width * height * channels`` interleaved samples."""
        image = cls(width, height, channels)
        values = np.asarray(data, dtype=np.int16).reshape(-1)
        if values.size != width * height * channels:
            raise ValueError("data does not hold width * height * channels samples")
        image.data[:] = values.reshape(height, width, channels)
        return image

    @classmethod
    def filled(cls, width: int, height: int, channels: int, value: int) -> "MultiShortImage":
        image = cls(width, height, channels)
        image.data.fill(value)
        return image

    def copy_parameters(self, other: "MultiShortImage") -> None:
        """Take over the white level, black level and bit depth of ``other``."""
        self.max_value = other.max_value
        self.blc = other.blc
        self.bits = other.bits

    def clone(self) -> "MultiShortImage":
        image = MultiShortImage(self.width, self.height, self.channels)
        image.copy_parameters(self)
        image.data[:] = self.data
        return image

    def rect_histogram(
        self, max_value: int, left: int, top: int, right: int, bottom: int
    ) -> list[int]:
        """Histogram of ``max_value`` bins over the clipped rectangle.

        ``right`` and ``bottom`` are exclusive.
        """
        if self.channels != 1:
            raise ValueError("histograms need a single-channel image")
        left, top = max(0, left), max(0, top)
        right, bottom = min(right, self.width), min(bottom, self.height)
        if bottom <= top or right <= left:
            raise ValueError("rectangle is empty")
        values = self.data[top:bottom, left:right, 0].reshape(-1).astype(np.int64)
        if values.size and (values.min() < 0 or values.max() >= max_value):
            raise ValueError("sample outside the histogram range")
        return np.bincount(values, minlength=max_value)[:max_value].tolist()

    def block_average(self, radius: int) -> "MultiShortImage":
        """Rounded box mean around each sample, from an unsigned 32-bit integral.

        Windows reach at most to the next-to-last row, as in the integral
        lookup they are computed from.
        """
        if self.channels != 1:
            raise ValueError("block averages need a single-channel image")
        if radius < 1 or self.height < 2:
            raise ValueError("needs radius >= 1 and at least two rows")
        h, w = self.height, self.width
        integral = np.zeros((h + 1, w + 1), dtype=np.int64)
        integral[1:, 1:] = self.data[..., 0].astype(np.int64).cumsum(0).cumsum(1)
        integral %= _U32
        ys = np.arange(h)
        xs = np.arange(w)
        y1 = np.maximum(ys - radius, 0)
        y2 = np.minimum(ys + radius + 1, h - 1)
        x1 = np.maximum(xs - radius, 0)
        x2 = np.minimum(xs + radius + 1, w)
        total = (
            integral[np.ix_(y2, x2)]
            - integral[np.ix_(y1, x2)]
            - integral[np.ix_(y2, x1)]
            + integral[np.ix_(y1, x1)]
        ) % _U32
        count = (y2 - y1)[:, None] * (x2 - x1)[None, :]
        mean = ((total + count // 2) % _U32) // count
        out = MultiShortImage(w, h, 1)
        out.copy_parameters(self)
        out.data[..., 0] = _to_int16(mean)
        return out

    def bgrh_to_bgr8(self, add_h: bool = True) -> np.ndarray:
        """Channels 0-2 (plus channel 3 when present and ``add_h``) to 8 bits.

        Scaling by ``255 / max_value`` uses error diffusion, starting from
        half a step; at ``max_value == 255`` samples are only clipped.
        """
        if self.channels < 3:
            raise ValueError("a BGR image needs at least three channels")
        maxs = self.max_value
        px = self.data.reshape(-1, self.channels).astype(np.int64)
        values = px[:, :3]
        if self.channels > 3 and add_h:
            values = values + px[:, 3:4]
        values = np.maximum(values, 0)
        if maxs == 255:
            return np.minimum(values, 255).astype(np.uint8).reshape(self.height, self.width, 3)
        errors = [maxs // 2] * 3
        out: list[list[int]] = []
        for pixel in values.tolist():
            row = []
            for i, g in enumerate(pixel):
                total = g * 255 + errors[i]
                g = _trunc_div(total, maxs)
                errors[i] = total - g * maxs
                row.append(min(g, 255))
            out.append(row)
        return np.array(out, dtype=np.uint8).reshape(self.height, self.width, 3)

    def _bgr_sum(self) -> np.ndarray:
        if self.channels < 3:
            raise ValueError("a BGR image needs at least three channels")
        px = self.data.astype(np.int64)
        values = px[..., :3]
        if self.channels > 3:
            values = values + px[..., 3:4]
        return values

    def bgrh_to_bgr(self) -> "MultiShortImage":
        """Three-channel image of channels 0-2 plus channel 3, clipped to ``max_value``."""
        values = np.clip(self._bgr_sum(), 0, self.max_value)
        out = MultiShortImage(self.width, self.height, 3)
        out.max_value = self.max_value
        out.data[:] = values.astype(np.int16)
        return out

    def bgrh_to_rgb16(self) -> np.ndarray:
        """Channels 0-2 plus channel 3, clipped to ``[0, 32767]``, as uint16."""
        return np.clip(self._bgr_sum(), 0, _RGB16_MAX).astype(np.uint16)

    def _matching(self, other) -> np.ndarray:
        values = other.data if isinstance(other, MultiShortImage) else other
        arr = np.asarray(values)
        if arr.size != self.data.size:
            raise ValueError("images differ in size")
        return arr.reshape(self.data.shape).astype(np.int64)

    def apply_weight(self, weights, scale_bit: int) -> None:
        """Multiply by unsigned weights in place.

        Single-channel images divide the product by 4096, rounding toward
        zero; others shift it right by ``scale_bit``.  Results are clipped
        to the int16 range.
        """
        if scale_bit < 0:
            raise ValueError("scale_bit must not be negative")
        product = self.data.astype(np.int64) * self._matching(weights)
        if self.channels == 1:
            result = _trunc_div_array(product, 4096)
        else:
            result = product >> scale_bit
        self.data[:] = np.clip(result, -32768, 32767).astype(np.int16)

    def add_image(self, other) -> None:
        """Add ``other`` in place, clipped to the int16 range.

        On multi-channel images every channel after the first receives the
        new first channel plus the first channel of ``other``.
        """
        ref = self._matching(other)
        own = self.data.astype(np.int64)
        first = np.clip(own[..., 0] + ref[..., 0], -32768, 32767)
        self.data[..., 0] = first.astype(np.int16)
        if self.channels > 1:
            rest = np.clip(first + ref[..., 0], -32768, 32767).astype(np.int16)
            self.data[..., 1:] = rest[..., None]

    def single_channel_to_gray(
        self, channel: int, in_scale: int, out_scale: int, offset: int
    ) -> np.ndarray:
        """``|value * out_scale / in_scale + offset|`` of one channel, clipped to 8 bits."""
        if in_scale == 0:
            raise ValueError("in_scale must not be zero")
        channel = min(max(channel, 0), self.channels - 1)
        values = self.data[..., channel].astype(np.int64) * out_scale
        values = np.abs(_trunc_div_array(values, in_scale) + offset)
        return np.minimum(values, 255).astype(np.uint8)

    def bgrh_channels_to_bgr8(
        self, b: int, g: int, r: int, h: int, rng: Optional[random.Random] = None
    ) -> np.ndarray:
        """Pick three channels (plus optional offset channel ``h``) and dither to 8 bits."""
        maxs = self.max_value
        if maxs <= 0:
            raise ValueError("max_value must be positive")
        rng = rng or random.Random()
        ch = self.channels
        picks = [min(max(index, 0), ch - 1) for index in (b, g, r)]
        px = self.data.reshape(-1, ch).astype(np.int64)
        offset = px[:, h : h + 1] if 0 <= h < ch else np.zeros((px.shape[0], 1), np.int64)
        scaled = np.clip(px[:, picks] + offset, 0, maxs) * 255
        errors = [0, 0, 0]
        out: list[list[int]] = []
        for pixel in scaled.tolist():
            row = []
            for i, value in enumerate(pixel):
                row.append(min(_trunc_div(value + errors[i], maxs), 255))
                errors[i] = rng.randrange(maxs)
            out.append(row)
        return np.array(out, dtype=np.uint8).reshape(self.height, self.width, 3)