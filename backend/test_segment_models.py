import pytest

from segment_models import BoundingBox, GeoPoint, Segment


class TestBoundingBox:
    def test_around_points_with_buffer(self):
        bbox = BoundingBox.around([GeoPoint(50.87, 4.70), GeoPoint(50.8736, 4.703)], buffer_deg=0.01)
        assert bbox.south == pytest.approx(50.86)
        assert bbox.west == pytest.approx(4.69)
        assert bbox.north == pytest.approx(50.8836)
        assert bbox.east == pytest.approx(4.713)

    def test_around_clamps_to_valid_range(self):
        bbox = BoundingBox.around([GeoPoint(89.999, 179.999)], buffer_deg=0.01)
        assert bbox.north == 90.0
        assert bbox.east == 180.0

    def test_around_needs_points(self):
        with pytest.raises(ValueError):
            BoundingBox.around([])

    def test_inverted_box_rejected(self):
        with pytest.raises(ValueError):
            BoundingBox(50.9, 4.69, 50.86, 4.71)


def test_segment_needs_two_points():
    with pytest.raises(ValueError):
        Segment(points=[GeoPoint(50.87, 4.70)], tags={})
