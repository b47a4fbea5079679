"""Baseline JPEG encoding of planar YUV 4:2:0 images."""

from __future__ import annotations

import struct
from typing import Mapping, Sequence

import numpy as np

from hdrmat.jpeg_core import (
    aan_quant_table,
    block_order,
    compute_vli,
    fdct_float,
    quality_scaling,
    set_quant_table,
    upscale2x,
)
from hdrmat.jpeg_tables import (
    EOI_MARKER,
    FZBT,
    SOI_MARKER,
    STD_AC_UV_NRCODES,
    STD_AC_UV_VALUES,
    STD_AC_Y_NRCODES,
    STD_AC_Y_VALUES,
    STD_DC_UV_NRCODES,
    STD_DC_UV_VALUES,
    STD_DC_Y_NRCODES,
    STD_DC_Y_VALUES,
    STD_UV_QT,
    STD_Y_QT,
    HuffCode,
    build_std_huffman_table,
)

_EMPTY_CODE = HuffCode(0, 0)
_EOB = 0x00
_ZRL = 0xF0


def _wrap16(value: int) -> int:
    """Wrap an integer into the signed 16-bit range."""
    return ((int(value) + 0x8000) & 0xFFFF) - 0x8000


class BitWriter:
    """Packs codes most significant bit first, stuffing a zero after each 0xFF.

    Only completed bytes are emitted; bits of a partly filled byte stay pending.
    """

    def __init__(self) -> None:
        self._out = bytearray()
        self._byte = 0
        self._pos = 7

    def write(self, value: int, length: int) -> None:
        """Append the low ``length`` bits of ``value``."""
        if not 0 <= length <= 16:
            raise ValueError("a code holds between 0 and 16 bits")
        for bit in range(length - 1, -1, -1):
            if (value >> bit) & 1:
                self._byte |= 1 << self._pos
            self._pos -= 1
            if self._pos < 0:
                self._out.append(self._byte)
                if self._byte == 0xFF:
                    self._out.append(0x00)
                self._byte = 0
                self._pos = 7

    def write_code(self, code: HuffCode) -> None:
        self.write(code.code, code.length)

    def getvalue(self) -> bytes:
        """The completed bytes written so far."""
        return bytes(self._out)


def build_sym2(value: int) -> tuple[int, int]:
    """Return ``(amplitude, length)`` for the JPEG amplitude code of ``value``."""
    length = compute_vli(value)
    if value >= 0:
        amplitude = value
    else:
        amplitude = (2**length - 1) + value
    return _wrap16(amplitude), length


def rle_encode(coefficients: Sequence[int]) -> list[tuple[int, int, int]]:
    """Run-length code the AC part of 64 zigzag-ordered coefficients.

    Each entry is ``(zero_run, bit_length, amplitude)``; a run of sixteen zeros
    appears as ``(15, 0, 0)``.  Trailing zeros are dropped.
    """
    if len(coefficients) != 64:
        raise ValueError("a block holds exactly 64 coefficients")
    last = 63
    while last > 0 and coefficients[last] == 0:
        last -= 1
    symbols: list[tuple[int, int, int]] = []
    zeros = 0
    for value in coefficients[1 : last + 1]:
        if value == 0 and zeros < 15:
            zeros += 1
        else:
            symbols.append((zeros, compute_vli(value), int(value)))
            zeros = 0
    return symbols


def soi_segment() -> bytes:
    return SOI_MARKER


def eoi_segment() -> bytes:
    return EOI_MARKER


def app0_segment() -> bytes:
    """JFIF 1.1 header with no density unit and 1:1 aspect ratio."""
    return (
        b"\xff\xe0"
        + struct.pack(">H", 16)
        + b"JFIF\x00"
        + bytes((1, 1, 0))
        + struct.pack(">HH", 1, 1)
        + bytes((0, 0))
    )


def dqt_segment(y_table: Sequence[int], uv_table: Sequence[int]) -> bytes:
    """Two quantisation tables (ids 0 and 1), each given in zigzag order."""
    out = bytearray()
    for table_id, table in enumerate((y_table, uv_table)):
        if len(table) != 64:
            raise ValueError("a quantisation table holds exactly 64 entries")
        out += b"\xff\xdb" + struct.pack(">H", 67) + bytes([table_id]) + bytes(table)
    return bytes(out)


def sof_segment(width: int, height: int) -> bytes:
    """Baseline frame header for three components sampled 1x1."""
    if not (0 <= width <= 0xFFFF and 0 <= height <= 0xFFFF):
        raise ValueError("width and height must fit in 16 bits")
    return (
        b"\xff\xc0"
        + struct.pack(">HBHHB", 17, 8, height, width, 3)
        + bytes((1, 0x11, 0, 2, 0x11, 1, 3, 0x11, 1))
    )


def dht_segment() -> bytes:
    """The four standard Huffman tables: DC Y, DC UV, AC Y, AC UV."""
    out = bytearray()
    for info, nrcodes, values in (
        (0x00, STD_DC_Y_NRCODES, STD_DC_Y_VALUES),
        (0x01, STD_DC_UV_NRCODES, STD_DC_UV_VALUES),
        (0x10, STD_AC_Y_NRCODES, STD_AC_Y_VALUES),
        (0x11, STD_AC_UV_NRCODES, STD_AC_UV_VALUES),
    ):
        out += (
            b"\xff\xc4"
            + struct.pack(">H", 19 + len(values))
            + bytes([info])
            + bytes(nrcodes[1:17])
            + bytes(values)
        )
    return bytes(out)


def sos_segment() -> bytes:
    """Scan header: Y uses tables 0/0, U and V use tables 1/1."""
    return b"\xff\xda" + struct.pack(">H", 12) + bytes(
        (3, 1, 0x00, 2, 0x11, 3, 0x11, 0, 0x3F, 0)
    )


def encode_block(
    writer: BitWriter,
    block: Sequence[float],
    quant: Sequence[float],
    dc_table: Mapping[int, HuffCode],
    ac_table: Mapping[int, HuffCode],
    previous_dc: int,
) -> int:
    """Transform, quantise and entropy-code one level-shifted 8x8 block.

    Returns the block's quantised DC value, the predictor for the next block.
    """
    coefficients = fdct_float(block)
    factors = np.asarray(quant, dtype=np.float32)
    if factors.size != 64:
        raise ValueError("a quantisation table holds exactly 64 entries")
    product = (coefficients * factors).astype(np.float64)
    rounded = np.trunc((product + 16384.5) - 16384)
    zigzag = [0] * 64
    for value, position in zip(rounded.tolist(), FZBT):
        zigzag[position] = _wrap16(int(value))

    dc = zigzag[0]
    diff = _wrap16(dc - previous_dc)
    if diff == 0:
        writer.write_code(dc_table.get(0, _EMPTY_CODE))
    else:
        writer.write_code(dc_table.get(compute_vli(diff), _EMPTY_CODE))
        writer.write(*_sym2_bits(diff))

    last = 63
    while last > 0 and zigzag[last] == 0:
        last -= 1
    if last == 0:
        writer.write_code(ac_table.get(_EOB, _EMPTY_CODE))
        return dc

    for zeros, length, amplitude in rle_encode(zigzag):
        if length == 0:
            writer.write_code(ac_table.get(_ZRL, _EMPTY_CODE))
        else:
            writer.write_code(ac_table.get(zeros * 16 + length, _EMPTY_CODE))
            writer.write(*_sym2_bits(amplitude))
    if last != 63:
        writer.write_code(ac_table.get(_EOB, _EMPTY_CODE))
    return dc


def _sym2_bits(value: int) -> tuple[int, int]:
    amplitude, length = build_sym2(value)
    return amplitude & 0xFFFF, length


def _full_plane(plane: bytes, size: int) -> bytes:
    data = bytes(plane)
    if len(data) < size:
        data += bytes(size - len(data))
    return data[:size]


def encode_yuv420(
    y_plane: bytes,
    u_plane: bytes,
    v_plane: bytes,
    width: int,
    height: int,
    quality: int,
) -> bytes:
    """Encode full-size Y and half-size U, V planes as a baseline JPEG stream.

    Chroma is replicated to full size and coded 1x1, one block of each
    component in turn.  Pending bits of an unfinished last byte are not written.
    """
    size = width * height
    half_w, half_h = width // 2, height // 2
    if len(y_plane) < size:
        raise ValueError("Y plane is smaller than width * height")
    if len(u_plane) < half_w * half_h or len(v_plane) < half_w * half_h:
        raise ValueError("chroma plane is smaller than (width/2) * (height/2)")

    y_buf = block_order(bytes(y_plane)[:size], width, height)
    u_buf = block_order(_full_plane(upscale2x(u_plane, half_w, half_h), size), width, height)
    v_buf = block_order(_full_plane(upscale2x(v_plane, half_w, half_h), size), width, height)

    scale = quality_scaling(quality)
    y_table = set_quant_table(STD_Y_QT, scale)
    uv_table = set_quant_table(STD_UV_QT, scale)
    y_quant = aan_quant_table(y_table)
    uv_quant = aan_quant_table(uv_table)

    header = (
        soi_segment()
        + app0_segment()
        + dqt_segment(y_table, uv_table)
        + sof_segment(width, height)
        + dht_segment()
        + sos_segment()
    )

    dc_y = build_std_huffman_table(STD_DC_Y_NRCODES, STD_DC_Y_VALUES)
    ac_y = build_std_huffman_table(STD_AC_Y_NRCODES, STD_AC_Y_VALUES)
    dc_uv = build_std_huffman_table(STD_DC_UV_NRCODES, STD_DC_UV_VALUES)
    ac_uv = build_std_huffman_table(STD_AC_UV_NRCODES, STD_AC_UV_VALUES)

    planes = [
        np.frombuffer(buf, dtype=np.uint8).astype(np.float32) - 128.0
        for buf in (y_buf, u_buf, v_buf)
    ]
    writer = BitWriter()
    predictors = [0, 0, 0]
    components = (
        (y_quant, dc_y, ac_y),
        (uv_quant, dc_uv, ac_uv),
        (uv_quant, dc_uv, ac_uv),
    )
    for index in range(size // 64):
        start = index * 64
        for channel, (quant, dc_table, ac_table) in enumerate(components):
            predictors[channel] = encode_block(
                writer,
                planes[channel][start : start + 64],
                quant,
                dc_table,
                ac_table,
                predictors[channel],
            )
    return header + writer.getvalue() + eoi_segment()