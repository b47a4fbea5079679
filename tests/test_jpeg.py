import pytest

from hdrmat.jpeg import (
    BitWriter,
    app0_segment,
    build_sym2,
    dht_segment,
    dqt_segment,
    encode_block,
    encode_yuv420,
    eoi_segment,
    rle_encode,
    sof_segment,
    soi_segment,
    sos_segment,
)
from hdrmat.jpeg_core import aan_quant_table, quality_scaling, set_quant_table
from hdrmat.jpeg_tables import (
    STD_AC_Y_NRCODES,
    STD_AC_Y_VALUES,
    STD_DC_Y_NRCODES,
    STD_DC_Y_VALUES,
    STD_UV_QT,
    STD_Y_QT,
    build_std_huffman_table,
)


def _y_tables():
    dc = build_std_huffman_table(STD_DC_Y_NRCODES, STD_DC_Y_VALUES)
    ac = build_std_huffman_table(STD_AC_Y_NRCODES, STD_AC_Y_VALUES)
    quant = aan_quant_table(set_quant_table(STD_Y_QT, quality_scaling(75)))
    return quant, dc, ac


def test_bitwriter_stuffs_ff():
    writer = BitWriter()
    writer.write(0xFF, 8)
    assert writer.getvalue() == b"\xff\x00"


def test_bitwriter_keeps_partial_byte_pending():
    writer = BitWriter()
    writer.write(0b101, 3)
    assert writer.getvalue() == b""
    writer.write(0b10101, 5)
    assert writer.getvalue() == bytes([0b10110101])


def test_bitwriter_rejects_long_codes():
    with pytest.raises(ValueError):
        BitWriter().write(0, 17)


def test_build_sym2_positive_and_negative():
    assert build_sym2(5) == (5, 3)
    assert build_sym2(-5) == (2, 3)
    assert build_sym2(0) == (0, 0)


def test_rle_encode_run_and_value():
    coefficients = [7, 0, 0, 3] + [0] * 60
    assert rle_encode(coefficients) == [(2, 2, 3)]


def test_rle_encode_zero_run_marker():
    coefficients = [0] * 64
    coefficients[17] = -1
    assert rle_encode(coefficients) == [(15, 0, 0), (0, 1, -1)]


def test_rle_encode_all_zero_ac():
    assert rle_encode([12] + [0] * 63) == []


def test_rle_encode_rejects_wrong_length():
    with pytest.raises(ValueError):
        rle_encode([0] * 10)


def test_markers():
    assert soi_segment() == b"\xff\xd8"
    assert eoi_segment() == b"\xff\xd9"


def test_app0_is_jfif_header():
    segment = app0_segment()
    assert segment[:4] == b"\xff\xe0\x00\x10"
    assert segment[4:9] == b"JFIF\x00"
    assert len(segment) == 18


def test_dqt_holds_both_tables():
    y_table = set_quant_table(STD_Y_QT, 50)
    uv_table = set_quant_table(STD_UV_QT, 50)
    segment = dqt_segment(y_table, uv_table)
    assert segment[:5] == b"\xff\xdb\x00\x43\x00"
    assert segment[5:69] == bytes(y_table)
    assert segment[69:74] == b"\xff\xdb\x00\x43\x01"
    assert segment[74:] == bytes(uv_table)


def test_dqt_rejects_short_table():
    with pytest.raises(ValueError):
        dqt_segment([1] * 10, [1] * 64)


def test_sof_dimensions_big_endian():
    segment = sof_segment(640, 480)
    assert segment[:5] == b"\xff\xc0\x00\x11\x08"
    assert segment[5:9] == (480).to_bytes(2, "big") + (640).to_bytes(2, "big")
    assert segment[9] == 3


def test_sof_rejects_oversized():
    with pytest.raises(ValueError):
        sof_segment(70000, 10)


def test_dht_contains_four_tables():
    segment = dht_segment()
    assert segment.count(b"\xff\xc4") == 4
    assert segment[:5] == b"\xff\xc4\x00\x1f\x00"
    assert bytes(STD_AC_Y_VALUES) in segment


def test_sos_header():
    segment = sos_segment()
    assert segment[:5] == b"\xff\xda\x00\x0c\x03"
    assert segment[-3:] == b"\x00\x3f\x00"


def test_encode_flat_block_has_zero_dc():
    quant, dc, ac = _y_tables()
    writer = BitWriter()
    assert encode_block(writer, [0.0] * 64, quant, dc, ac, 0) == 0
    assert encode_block(writer, [0.0] * 64, quant, dc, ac, 0) == 0
    expected = BitWriter()
    for _ in range(2):
        expected.write_code(dc[0])
        expected.write_code(ac[0x00])
    assert writer.getvalue() == expected.getvalue()


def test_encode_block_dc_sign_follows_brightness():
    quant, dc, ac = _y_tables()
    assert encode_block(BitWriter(), [100.0] * 64, quant, dc, ac, 0) > 0
    assert encode_block(BitWriter(), [-100.0] * 64, quant, dc, ac, 0) < 0


def _gradient(width, height):
    return bytes((x * 7 + y * 3) % 256 for y in range(height) for x in range(width))


def test_encode_yuv420_structure():
    width, height = 16, 16
    y = _gradient(width, height)
    u = bytes([100] * 64)
    v = bytes([150] * 64)
    data = encode_yuv420(y, u, v, width, height, 90)
    header = (
        soi_segment()
        + app0_segment()
        + dqt_segment(
            set_quant_table(STD_Y_QT, quality_scaling(90)),
            set_quant_table(STD_UV_QT, quality_scaling(90)),
        )
        + sof_segment(width, height)
        + dht_segment()
        + sos_segment()
    )
    assert data.startswith(header)
    assert data.endswith(b"\xff\xd9")
    assert len(data) > len(header) + 2


def test_encode_yuv420_is_deterministic_and_quality_dependent():
    y = _gradient(16, 16)
    u = bytes(range(64))
    v = bytes(range(64, 128))
    first = encode_yuv420(y, u, v, 16, 16, 80)
    assert first == encode_yuv420(y, u, v, 16, 16, 80)
    assert first != encode_yuv420(y, u, v, 16, 16, 10)


def test_encode_yuv420_rejects_small_planes():
    with pytest.raises(ValueError):
        encode_yuv420(b"\x00" * 10, b"\x00" * 16, b"\x00" * 16, 8, 8, 50)
    with pytest.raises(ValueError):
        encode_yuv420(b"\x00" * 64, b"\x00" * 3, b"\x00" * 16, 8, 8, 50)