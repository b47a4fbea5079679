import random

import numpy as np
import pytest

from hdrmat.short_image import MultiShortImage


def test_bits_set_max_value():
    image = MultiShortImage(2, 2, 1, 10)
    assert image.max_value == 1023 and image.blc == 0


def test_bits_capped_at_15():
    image = MultiShortImage(2, 2, 1, 16)
    assert image.bits == 15 and image.max_value == 32767


def test_from_data_wrong_size():
    with pytest.raises(ValueError):
        MultiShortImage.from_data(2, 2, 1, [1, 2])


def test_clone_copies_parameters():
    image = MultiShortImage.filled(2, 2, 3, 4)
    image.bits, image.max_value, image.blc = 12, 4095, 64
    copy = image.clone()
    copy.data[0, 0, 0] = -1
    assert image.data[0, 0, 0] == 4
    assert (copy.bits, copy.max_value, copy.blc) == (12, 4095, 64)


def test_rect_histogram_counts():
    image = MultiShortImage.from_data(2, 2, 1, [0, 1, 1, 2])
    hist = image.rect_histogram(4, -5, -5, 10, 10)
    assert hist == [1, 2, 1, 0]
    assert sum(hist) == image.data.size


def test_rect_histogram_empty_rect():
    image = MultiShortImage.filled(4, 4, 1, 0)
    with pytest.raises(ValueError):
        image.rect_histogram(4, 2, 2, 2, 3)


def test_rect_histogram_needs_single_channel():
    image = MultiShortImage.filled(2, 2, 3, 0)
    with pytest.raises(ValueError):
        image.rect_histogram(4, 0, 0, 2, 2)


def test_block_average_constant():
    image = MultiShortImage.filled(5, 4, 1, 10)
    out = image.block_average(1)
    assert np.all(out.data == 10)
    assert out.data.shape == image.data.shape


def test_block_average_rejects_single_row():
    image = MultiShortImage.filled(4, 1, 1, 3)
    with pytest.raises(ValueError):
        image.block_average(1)


def test_bgrh_to_bgr8_at_255_clips_only():
    image = MultiShortImage.from_data(2, 1, 4, [10, 20, 30, 5, 250, -40, 0, 10])
    image.max_value = 255
    out = image.bgrh_to_bgr8(True)
    assert out[0, 0].tolist() == [15, 25, 35]
    assert out[0, 1].tolist() == [255, 0, 10]


def test_bgrh_to_bgr8_without_h():
    image = MultiShortImage.from_data(1, 1, 4, [10, 20, 30, 5])
    image.max_value = 255
    out = image.bgrh_to_bgr8(False)
    assert out[0, 0].tolist() == [10, 20, 30]


def test_bgrh_to_bgr8_full_scale():
    image = MultiShortImage.filled(3, 2, 3, 32767)
    image.max_value = 32767
    out = image.bgrh_to_bgr8(True)
    assert out.shape == (2, 3, 3)
    assert out.tolist() == [[[255, 255, 255]] * 3] * 2


def test_bgrh_to_bgr8_needs_three_channels():
    image = MultiShortImage(2, 2, 2)
    with pytest.raises(ValueError):
        image.bgrh_to_bgr8(True)


def test_bgrh_to_bgr_clips_and_keeps_max():
    image = MultiShortImage(2, 1, 4, 10)
    image.data[0, 0] = [1000, 50, -60, 30]
    out = image.bgrh_to_bgr()
    assert out.channels == 3 and out.max_value == 1023
    assert out.data[0, 0].tolist() == [1023, 80, 0]


def test_bgrh_to_rgb16():
    image = MultiShortImage.from_data(1, 1, 4, [30000, -10, 5, 10000])
    out = image.bgrh_to_rgb16()
    assert out.dtype == np.uint16
    assert out[0, 0].tolist() == [32767, 9990, 10005]


def test_apply_weight_unity_single_channel():
    image = MultiShortImage.from_data(3, 1, 1, [-100, 0, 300])
    image.apply_weight(np.full((1, 3), 4096, dtype=np.uint16), 12)
    assert image.data[0, :, 0].tolist() == [-100, 0, 300]


def test_apply_weight_single_channel_truncates_toward_zero():
    image = MultiShortImage.from_data(1, 1, 1, [-1])
    image.apply_weight([2048], 12)
    assert image.data[0, 0, 0] == 0


def test_apply_weight_multi_channel_shift_and_clip():
    image = MultiShortImage.from_data(1, 1, 3, [-3, 20000, 8])
    image.apply_weight([1, 4, 2], 1)
    assert image.data[0, 0].tolist() == [-2, 32767, 8]


def test_add_image_single_channel_clips():
    image = MultiShortImage.from_data(2, 1, 1, [30000, -30000])
    other = MultiShortImage.from_data(2, 1, 1, [10000, -10000])
    image.add_image(other)
    assert image.data[0, :, 0].tolist() == [32767, -32768]


def test_add_image_multi_channel_follows_first_channel():
    image = MultiShortImage.from_data(1, 1, 3, [1, 2, 3])
    other = MultiShortImage.from_data(1, 1, 3, [10, 20, 30])
    image.add_image(other)
    assert image.data[0, 0].tolist() == [11, 21, 21]


def test_add_image_size_mismatch():
    image = MultiShortImage.filled(2, 2, 1, 0)
    with pytest.raises(ValueError):
        image.add_image(MultiShortImage.filled(3, 2, 1, 0))


def test_single_channel_to_gray_absolute_and_clipped():
    image = MultiShortImage.from_data(3, 1, 1, [-5, 3, 300])
    out = image.single_channel_to_gray(0, 1, 1, 0)
    assert out[0].tolist() == [5, 3, 255]


def test_single_channel_to_gray_zero_scale():
    image = MultiShortImage.filled(1, 1, 1, 1)
    with pytest.raises(ValueError):
        image.single_channel_to_gray(0, 0, 1, 0)


def test_channels_to_bgr8_swaps_at_255():
    image = MultiShortImage.from_data(2, 1, 3, [10, 20, 30, 40, 50, 60])
    image.max_value = 255
    out = image.bgrh_channels_to_bgr8(2, 1, 0, -1, random.Random(3))
    assert np.array_equal(out, image.data[..., [2, 1, 0]].astype(np.uint8))