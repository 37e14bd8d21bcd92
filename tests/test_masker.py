import numpy as np
import pytest

from deformap.masker import Masker
from deformap.masks import BorderMask, BrightMask


def _image():
    img = np.full((80, 80), 100, dtype=np.uint8)
    img[40, 40] = 255
    return img


def test_empty_masker_keeps_everything():
    mask = Masker().mask(np.zeros((5, 7, 3), dtype=np.uint8))
    assert mask.shape == (5, 7)
    assert np.all(mask == 255)


def test_mask_is_intersection_of_filters():
    border = BorderMask(10, 10, 10, 10, 0)
    bright = BrightMask(200)
    masker = Masker()
    masker.add_filter(border)
    masker.add_filter(bright)
    img = _image()
    expected = border.generate_mask(img) & bright.generate_mask(img)
    assert np.array_equal(masker.mask(img), expected)


def test_load_from_txt(tmp_path):
    path = tmp_path / "filters.txt"
    path.write_text("BorderFilter 1 2 3 4 5\nBrightFilter 200\nUnknown 3\n\n")
    masker = Masker()
    assert masker.load_from_txt(path) == 2
    assert masker.print_filters() == (
        "List of filters (2):\n"
        "\t-Border mask with parameters [1,2,3,4]\n"
        "\t-Bright mask with th_ = 200\n"
    )


def test_load_missing_file_adds_nothing(tmp_path):
    masker = Masker()
    assert masker.load_from_txt(tmp_path / "absent.txt") == 0
    assert len(masker) == 0


def test_load_rejects_missing_parameters(tmp_path):
    path = tmp_path / "filters.txt"
    path.write_text("BorderFilter 1 2\n")
    with pytest.raises(ValueError):
        Masker().load_from_txt(path)


def test_load_rejects_cnn(tmp_path):
    path = tmp_path / "filters.txt"
    path.write_text("CNN model.pt\n")
    with pytest.raises(ValueError):
        Masker().load_from_txt(path)


def test_delete_filter():
    masker = Masker()
    masker.add_filter(BrightMask(10))
    masker.add_filter(BrightMask(20))
    masker.delete_filter(0)
    assert masker.print_filters() == "List of filters (1):\n\t-Bright mask with th_ = 20\n"
    with pytest.raises(IndexError):
        masker.delete_filter(3)


def test_print_filters_empty():
    assert Masker().print_filters() == "List of filters (0):\n"