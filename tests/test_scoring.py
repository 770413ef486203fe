import pytest

from cleanshare.scoring import score
from cleanshare.types import DetectionKind


def test_perfect_read_keeps_pattern_confidence():
    assert score(DetectionKind.EMAIL, 0.9) == pytest.approx(0.9)


def test_ocr_confidence_scales_down():
    assert score(DetectionKind.PHONE, 0.85, 0.9) == pytest.approx(0.8053, abs=1e-4)


def test_checksum_bonus_is_capped():
    assert score(DetectionKind.PAN, 0.9, 0.95) == 1.0


def test_heuristic_penalty_for_names():
    assert score(DetectionKind.NAME, 0.6) == pytest.approx(0.42)


def test_barcode_confidence():
    assert score(DetectionKind.BARCODE, 1.0) == pytest.approx(0.95)


@pytest.mark.parametrize("ocr", [None, 0.2, 0.5, 0.9, 1.0])
def test_pan_outranks_looser_readings(ocr):
    pan = score(DetectionKind.PAN, 0.9, ocr)
    for kind, conf in (
        (DetectionKind.PHONE, 0.85),
        (DetectionKind.PASSPORT, 0.6),
        (DetectionKind.ADDRESS, 0.8),
    ):
        assert pan > score(kind, conf, ocr)


@pytest.mark.parametrize("ocr", [0.3, 0.7, None])
def test_monotonic_in_pattern_confidence(ocr):
    values = [score(DetectionKind.OTHER, c / 10, ocr) for c in range(11)]
    assert values == sorted(values)
    assert all(0.0 <= v <= 1.0 for v in values)
