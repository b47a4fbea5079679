"""Multi-channel 32-bit integer images holding BGR plus a shared offset."""

from __future__ import annotations

import random
from typing import Optional, Sequence

import numpy as np


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _check_size(width: int, height: int, channels: int) -> None:
    if width < 0 or height < 0:
        raise ValueError("image dimensions must not be negative")
    if channels < 1:
        raise ValueError("an image needs at least one channel")


def _clamp_index(index: int, channels: int) -> int:
    return min(max(index, 0), channels - 1)


class MultiIntImage:
    """A ``height`` x ``width`` image of ``channels`` int32 samples per pixel.

    ``max_value`` is the white level used when scaling to 8 bits and
    ``blc`` the black level; both travel with clones.
    """

    def __init__(self, width: int, height: int, channels: int = 1) -> None:
        _check_size(width, height, channels)
        self.data = np.zeros((height, width, channels), dtype=np.int32)
        self.max_value = 255
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
    ) -> "MultiIntImage":
        """Create an image from ``width * height * channels`` interleaved samples."""
        image = cls(width, height, channels)
        values = np.asarray(data, dtype=np.int32).reshape(-1)
        if values.size != width * height * channels:
            raise ValueError("data does not hold width * height * channels samples")
        image.data[:] = values.reshape(height, width, channels)
        return image

    @classmethod
    def filled(cls, width: int, height: int, value: int) -> "MultiIntImage":
        """Create a single-channel image with every sample set to ``value``."""
        image = cls(width, height, 1)
        image.data.fill(value)
        return image

    def clone(self) -> "MultiIntImage":
        """An independent copy, levels included."""
        image = MultiIntImage(self.width, self.height, self.channels)
        image.data[:] = self.data
        image.max_value = self.max_value
        image.blc = self.blc
        return image

    def _require_max(self) -> int:
        if self.max_value <= 0:
            raise ValueError("max_value must be positive")
        return self.max_value

    def bgrh_to_bgr8(self) -> np.ndarray:
        """Add channel 3 to channels 0-2 and scale to 8 bits with error diffusion.

        Returns a ``(height, width, 3)`` uint8 array.
        """
        if self.channels < 4:
            raise ValueError("a BGRH image needs at least four channels")
        maxs = self._require_max()
        px = self.data.reshape(-1, self.channels).astype(np.int64)
        scaled = np.clip(px[:, :3] + px[:, 3:4], 0, maxs) * 255
        errors = [0, 0, 0]
        out: list[list[int]] = []
        for pixel in scaled.tolist():
            row = []
            for i, value in enumerate(pixel):
                total = value + errors[i]
                t = min(max(_trunc_div(total, maxs), 0), 255)
                row.append(t)
                errors[i] = total - t * maxs
            out.append(row)
        return np.array(out, dtype=np.uint8).reshape(self.height, self.width, 3)

    def bgrh_to_bgr16(self) -> np.ndarray:
        """Add channel 3 to channels 0-2, clipped to ``[0, max_value]``, as uint16."""
        if self.channels < 4:
            raise ValueError("a BGRH image needs at least four channels")
        px = self.data.astype(np.int64)
        values = np.clip(px[..., :3] + px[..., 3:4], 0, self.max_value)
        return values.astype(np.uint16)

    def bgrh_channels_to_bgr8(
        self, b: int, g: int, r: int, h: int, rng: Optional[random.Random] = None
    ) -> np.ndarray:
        """Pick three channels (plus optional offset channel ``h``) and scale to 8 bits.

        Channel indices are clamped into range; ``h`` outside the channels
        means no offset.  Each sample gets random dither below one step.
        """
        maxs = self._require_max()
        rng = rng or random.Random()
        ch = self.channels
        picks = [_clamp_index(index, ch) for index in (b, g, r)]
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

    def single_channel_to_gray(
        self, channel: int, in_scale: int, out_scale: int, offset: int
    ) -> np.ndarray:
        """Scale one channel by ``out_scale / in_scale``, add ``offset``, clip to 8 bits.

        The division remainder is carried on to the next sample.
        """
        if in_scale == 0:
            raise ValueError("in_scale must not be zero")
        channel = _clamp_index(channel, self.channels)
        error = 0
        out: list[int] = []
        for value in self.data[..., channel].reshape(-1).tolist():
            total = value * out_scale + error
            quotient = _trunc_div(total, in_scale)
            error = total - quotient * in_scale
            out.append(min(max(quotient + offset, 0), 255))
        return np.array(out, dtype=np.uint8).reshape(self.height, self.width)