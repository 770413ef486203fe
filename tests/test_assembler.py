import pytest

from cleanshare.patterns import build_engine
from cleanshare.pipeline.detection import IdFactory, PageTokens, assemble
from cleanshare.types import BarcodeHit, CoordinateSystem, DetectionKind, Token

from conftest import CARD, EMAIL, pixel_token


def _page(*tokens, index=0, barcodes=()):
    return PageTokens(page_index=index, tokens=list(tokens), barcodes=list(barcodes))


def test_detections_are_located_scored_and_previewed():
    page = _page(
        pixel_token(CARD, (20, 10, 120, 30), conf=0.9),
        pixel_token("hello", (20, 40, 60, 50)),
        pixel_token(EMAIL, (20, 60, 180, 80), conf=0.8),
    )
    result = assemble([page], 1)
    kinds = [d.kind for d in result.detections]
    assert kinds == [DetectionKind.PAN, DetectionKind.EMAIL]
    pan = result.detections[0]
    assert pan.preview == CARD
    assert pan.box.x == pytest.approx(0.1)
    assert pan.confidence == 1.0
    assert result.pages == 1


def test_ids_are_unique_per_session():
    page = _page(pixel_token(CARD, (0, 0, 10, 10)), pixel_token(EMAIL, (0, 20, 10, 30)))
    first = assemble([page], 1, session="aaaa")
    second = assemble([page], 1)
    ids = [d.id for d in first.detections]
    assert ids == ["det-aaaa-1", "det-aaaa-2"]
    assert not set(ids) & {d.id for d in second.detections}


def test_id_factory_counts_up():
    ids = IdFactory("s")
    assert [ids(), ids(), ids()] == ["det-s-1", "det-s-2", "det-s-3"]


def test_tokens_without_page_size_are_dropped():
    orphan = Token(
        text=EMAIL,
        source_bbox=(0, 0, 10, 10),
        coordinate_system=CoordinateSystem.POINT_TOP_LEFT,
        page_index=0,
        page_width=0.0,
        page_height=0.0,
    )
    result = assemble([_page(orphan)], 1)
    assert result.detections == []
    assert any("dropped" in w for w in result.warnings)


def test_enabled_kinds_and_threshold_filter():
    page = _page(
        pixel_token(CARD, (0, 0, 10, 10), conf=0.9),
        pixel_token(EMAIL, (0, 20, 10, 30), conf=0.9),
        pixel_token("Margaret", (0, 40, 10, 50), conf=0.9),
    )
    only_email = assemble([page], 1, enabled_kinds=[DetectionKind.EMAIL])
    assert [d.kind for d in only_email.detections] == [DetectionKind.EMAIL]

    strict = assemble([page], 1, confidence_threshold=0.8)
    assert DetectionKind.NAME not in {d.kind for d in strict.detections}
    assert DetectionKind.PAN in {d.kind for d in strict.detections}


def test_detections_beyond_page_count_are_dropped():
    page = _page(pixel_token(EMAIL, (0, 0, 10, 10), page=3), index=3)
    assert assemble([page], 2).detections == []


def test_custom_patterns_feed_the_assembler():
    engine = build_engine([{"id": "t", "name": "Ticket", "pattern": r"^TCK-\d+$"}])
    result = assemble([_page(pixel_token("TCK-991", (0, 0, 10, 10)))], 1, engine=engine)
    assert result.detections[0].kind is DetectionKind.OTHER
    assert result.detections[0].reason == "Custom pattern: Ticket"


def test_barcode_hits_become_detections():
    hit = BarcodeHit(
        points=((10, 10), (60, 10), (60, 60), (10, 60)),
        payload="https://example.com/pay?id=1",
        page_index=0,
        page_width=200,
        page_height=100,
    )
    result = assemble([_page(barcodes=[hit])], 1)
    det = result.detections[0]
    assert det.kind is DetectionKind.BARCODE
    assert det.confidence == pytest.approx(0.95)
    assert det.box.w == pytest.approx(0.25)
