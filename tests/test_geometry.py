import pytest

from cleanshare.geometry import (
    corners_to_box,
    derotate,
    denormalize,
    normalize,
    to_page_rect,
    to_pdf_user_space,
    to_pixel_rect,
)
from cleanshare.types import Box


def test_normalize_pixel_bbox():
    box = normalize((20, 10, 120, 30), 200, 100, page=2)
    assert box.x == pytest.approx(0.1)
    assert box.y == pytest.approx(0.1)
    assert box.w == pytest.approx(0.5)
    assert box.h == pytest.approx(0.2)
    assert box.page == 2


@pytest.mark.parametrize("width,height", [(0, 100), (200, 0), (None, 100), (200, None)])
def test_missing_page_size_is_rejected(width, height):
    assert normalize((0, 0, 10, 10), width, height) is None


def test_out_of_page_bbox_is_clamped():
    box = normalize((-5, 90, 250, 130), 200, 100)
    assert box.x == 0.0
    assert box.x + box.w == pytest.approx(1.0)
    assert box.y + box.h == pytest.approx(1.0)


@pytest.mark.parametrize(
    "bbox,size",
    [
        ((20, 10, 120, 30), (200, 100)),
        ((72.0, 88.5, 190.25, 102.0), (612.0, 792.0)),
        ((0, 0, 612, 792), (612.0, 792.0)),
    ],
)
def test_round_trip_within_a_unit(bbox, size):
    box = normalize(bbox, *size)
    back = denormalize(box, *size)
    for a, b in zip(back, bbox):
        assert abs(a - b) < 1.0


def test_page_rect_does_not_flip():
    box = Box(x=0.1, y=0.1, w=0.5, h=0.2)
    x0, y0, x1, y1 = to_page_rect(box, 612, 792)
    assert y0 == pytest.approx(79.2)
    assert y1 == pytest.approx(237.6)


def test_pdf_user_space_flips_once():
    box = Box(x=0.1, y=0.1, w=0.5, h=0.2)
    x, y, w, h = to_pdf_user_space(box, 612, 792)
    assert x == pytest.approx(61.2)
    assert y == pytest.approx((1 - 0.1 - 0.2) * 792)
    assert w == pytest.approx(306.0)
    assert h == pytest.approx(158.4)
    # Top edge in PDF space equals page height minus the top offset.
    assert y + h == pytest.approx(792 - 79.2)


def test_pdf_user_space_honours_crop_origin():
    box = Box(x=0.0, y=0.0, w=1.0, h=1.0)
    x, y, _, _ = to_pdf_user_space(box, 500, 700, origin=(10, 20))
    assert (x, y) == pytest.approx((10, 20))


def test_pixel_rect_is_clamped_to_canvas():
    box = Box(x=0.9, y=0.9, w=0.1, h=0.1)
    x, y, w, h = to_pixel_rect(box, 200, 100)
    assert x + w <= 200 and y + h <= 100
    assert (w, h) == (20, 10)


def test_corners_to_box():
    box = corners_to_box([(10, 10), (50, 12), (48, 40), (8, 38)], 100, 100, page=1)
    assert box.x == pytest.approx(0.08)
    assert box.y == pytest.approx(0.10)
    assert box.w == pytest.approx(0.42)
    assert box.h == pytest.approx(0.30)
    assert box.page == 1


def test_box_must_fit_page():
    with pytest.raises(ValueError):
        Box(x=0.8, y=0.0, w=0.5, h=0.1)


@pytest.mark.parametrize(
    "rotation,shown,size",
    [
        (90, Box(x=0.9, y=0.0, w=0.1, h=0.2), (0.2, 0.1)),
        (180, Box(x=0.9, y=0.8, w=0.1, h=0.2), (0.1, 0.2)),
        (270, Box(x=0.0, y=0.8, w=0.1, h=0.2), (0.2, 0.1)),
    ],
)
def test_derotate_brings_the_displayed_corner_home(rotation, shown, size):
    box = derotate(shown, rotation)
    assert box.x == pytest.approx(0.0, abs=1e-9)
    assert box.y == pytest.approx(0.0, abs=1e-9)
    assert (box.w, box.h) == pytest.approx(size)


def test_derotate_without_rotation_is_identity():
    box = Box(x=0.3, y=0.4, w=0.2, h=0.1, page=3)
    assert derotate(box, 0) == box
    assert derotate(box, 360) == box
