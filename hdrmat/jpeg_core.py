"""Transforms, quantisation tables and plane layout for baseline JPEG."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from hdrmat.jpeg_tables import AAN_SCALE_FACTOR, DC_MAX_QUANTED, FZBT

_CONST_BITS = 13
_PASS1_BITS = 2

_FIX_0_298631336 = 2446
_FIX_0_390180644 = 3196
_FIX_0_541196100 = 4433
_FIX_0_765366865 = 6270
_FIX_0_899976223 = 7373
_FIX_1_175875602 = 9633
_FIX_1_501321110 = 12299
_FIX_1_847759065 = 15137
_FIX_1_961570560 = 16069
_FIX_2_053119869 = 16819
_FIX_2_562915447 = 20995
_FIX_3_072711026 = 25172


def _as_block(block: Sequence[float], dtype) -> np.ndarray:
    arr = np.asarray(block, dtype=dtype)
    if arr.size != 64:
        raise ValueError("a block holds exactly 64 samples")
    return arr.reshape(8, 8)


def _islow_pass(d: list[np.ndarray], shift: int, first: bool) -> list[np.ndarray]:
    half = 1 << (shift - 1)
    tmp0 = d[0] + d[7]
    tmp1 = d[1] + d[6]
    tmp2 = d[2] + d[5]
    tmp3 = d[3] + d[4]

    tmp10 = tmp0 + tmp3
    if not first:
        tmp10 = tmp10 + (1 << (_PASS1_BITS - 1))
    tmp12 = tmp0 - tmp3
    tmp11 = tmp1 + tmp2
    tmp13 = tmp1 - tmp2

    tmp0 = d[0] - d[7]
    tmp1 = d[1] - d[6]
    tmp2 = d[2] - d[5]
    tmp3 = d[3] - d[4]

    out: list[np.ndarray] = [None] * 8  # type: ignore[list-item]
    if first:
        out[0] = (tmp10 + tmp11) << _PASS1_BITS
        out[4] = (tmp10 - tmp11) << _PASS1_BITS
    else:
        out[0] = (tmp10 + tmp11) >> _PASS1_BITS
        out[4] = (tmp10 - tmp11) >> _PASS1_BITS

    z1 = (tmp12 + tmp13) * _FIX_0_541196100 + half
    out[2] = (z1 + tmp12 * _FIX_0_765366865) >> shift
    out[6] = (z1 - tmp13 * _FIX_1_847759065) >> shift

    tmp10 = tmp0 + tmp3
    tmp11 = tmp1 + tmp2
    tmp12 = tmp0 + tmp2
    tmp13 = tmp1 + tmp3
    z1 = (tmp12 + tmp13) * _FIX_1_175875602 + half

    tmp0 = tmp0 * _FIX_1_501321110
    tmp1 = tmp1 * _FIX_3_072711026
    tmp2 = tmp2 * _FIX_2_053119869
    tmp3 = tmp3 * _FIX_0_298631336
    tmp10 = tmp10 * -_FIX_0_899976223
    tmp11 = tmp11 * -_FIX_2_562915447
    tmp12 = tmp12 * -_FIX_0_390180644 + z1
    tmp13 = tmp13 * -_FIX_1_961570560 + z1

    out[1] = (tmp0 + tmp10 + tmp12) >> shift
    out[3] = (tmp1 + tmp11 + tmp13) >> shift
    out[5] = (tmp2 + tmp11 + tmp12) >> shift
    out[7] = (tmp3 + tmp10 + tmp13) >> shift
    return out


def fdct_int8x8(block: Sequence[int]) -> list[int]:
    """Integer forward DCT of 64 samples, results scaled up by 8."""
    data = _as_block(block, np.int64)
    rows = _islow_pass([data[:, k] for k in range(8)], _CONST_BITS - _PASS1_BITS, True)
    work = np.stack(rows, axis=1)
    cols = _islow_pass([work[k, :] for k in range(8)], _CONST_BITS + _PASS1_BITS, False)
    return np.stack(cols, axis=0).reshape(64).tolist()


def _scaled(values: np.ndarray, factor: float) -> np.ndarray:
    return (values.astype(np.float64) * factor).astype(np.float32)


def _aan_pass(d: list[np.ndarray]) -> list[np.ndarray]:
    tmp0 = d[0] + d[7]
    tmp7 = d[0] - d[7]
    tmp1 = d[1] + d[6]
    tmp6 = d[1] - d[6]
    tmp2 = d[2] + d[5]
    tmp5 = d[2] - d[5]
    tmp3 = d[3] + d[4]
    tmp4 = d[3] - d[4]

    tmp10 = tmp0 + tmp3
    tmp13 = tmp0 - tmp3
    tmp11 = tmp1 + tmp2
    tmp12 = tmp1 - tmp2

    out: list[np.ndarray] = [None] * 8  # type: ignore[list-item]
    out[0] = tmp10 + tmp11
    out[4] = tmp10 - tmp11
    z1 = _scaled(tmp12 + tmp13, 0.707106781)
    out[2] = tmp13 + z1
    out[6] = tmp13 - z1

    tmp10 = tmp4 + tmp5
    tmp11 = tmp5 + tmp6
    tmp12 = tmp6 + tmp7
    z5 = _scaled(tmp10 - tmp12, 0.382683433)
    z2 = (0.541196100 * tmp10.astype(np.float64) + z5.astype(np.float64)).astype(np.float32)
    z4 = (1.306562965 * tmp12.astype(np.float64) + z5.astype(np.float64)).astype(np.float32)
    z3 = _scaled(tmp11, 0.707106781)
    z11 = tmp7 + z3
    z13 = tmp7 - z3

    out[5] = z13 + z2
    out[3] = z13 - z2
    out[1] = z11 + z4
    out[7] = z11 - z4
    return out


def fdct_float(block: Sequence[float]) -> np.ndarray:
    """AAN floating-point forward DCT; returns 64 float32 coefficients."""
    data = _as_block(block, np.float32)
    rows = _aan_pass([data[:, k] for k in range(8)])
    work = np.stack(rows, axis=1)
    cols = _aan_pass([work[k, :] for k in range(8)])
    return np.stack(cols, axis=0).reshape(64).astype(np.float32)


def quality_scaling(quality: int) -> int:
    """Map a 1..100 quality setting to a quantisation table percentage."""
    quality = min(max(quality, 1), 100)
    if quality < 50:
        return 5000 // quality
    return 200 - quality * 2


def set_quant_table(std_table: Sequence[int], quality: int) -> list[int]:
    """Scale a standard table by ``quality`` percent, stored in zigzag order."""
    if len(std_table) != 64:
        raise ValueError("a quantisation table holds exactly 64 entries")
    table = [0] * 64
    for position, value in zip(FZBT, std_table):
        table[position] = min(max((value * quality + 50) // 100, 1), 255)
    return table


def aan_quant_table(quant_table: Sequence[int]) -> np.ndarray:
    """Reciprocal quantisation factors for AAN DCT output, in natural order."""
    if len(quant_table) != 64:
        raise ValueError("a quantisation table holds exactly 64 entries")
    q = np.asarray(quant_table, dtype=np.float64)[list(FZBT)].reshape(8, 8)
    aan = np.asarray(AAN_SCALE_FACTOR, dtype=np.float64)
    divisor = q * aan[:, None] * aan[None, :] * 8.0
    return (1.0 / divisor).astype(np.float32).reshape(64)


def compute_vli(value: int) -> int:
    """Bit length of ``|value|`` as used by JPEG amplitude coding; 0 beyond 2047."""
    magnitude = abs(int(value))
    if magnitude > DC_MAX_QUANTED:
        return 0
    return magnitude.bit_length()


def upscale2x(plane: bytes, width: int, height: int) -> bytes:
    """Replicate each sample of a ``width`` x ``height`` plane into a 2x2 block."""
    if len(plane) < width * height:
        raise ValueError("plane is smaller than width * height")
    arr = np.frombuffer(bytes(plane), dtype=np.uint8)[: width * height]
    arr = arr.reshape(height, width)
    return arr.repeat(2, axis=0).repeat(2, axis=1).tobytes()


def block_order(plane: bytes, width: int, height: int) -> bytes:
    """Rearrange a plane so each 8x8 block is stored as 64 contiguous bytes.

    Blocks follow each other left to right within each band of eight rows.
    Samples outside whole blocks keep their places.
    """
    if len(plane) < width * height:
        raise ValueError("plane is smaller than width * height")
    out = np.frombuffer(bytes(plane), dtype=np.uint8)[: width * height].copy()
    xlen, ylen = width // 8, height // 8
    if xlen == 0 or ylen == 0:
        return out.tobytes()
    bands = out[: ylen * 8 * width].reshape(ylen, 8, width)
    blocks = (
        bands[:, :, : xlen * 8]
        .reshape(ylen, 8, xlen, 8)
        .transpose(0, 2, 1, 3)
        .reshape(ylen, xlen * 64)
    )
    flat_bands = bands.reshape(ylen, 8 * width)
    flat_bands[:, : xlen * 64] = blocks
    return out.tobytes()