"""Tests for core modules."""

import math

import pytest

from planmeter.core import geometry
from planmeter.core.errors import InvalidAnnotationField, InvalidCalibrationInput, InvalidGeometry, OutOfBounds
from planmeter.core.geometry import Point
from planmeter.core.models import DocumentMeasurement, MeasurementColor, MeasurementType, ScaleCalibration
from planmeter.core.units import Unit, convert_area, convert_length, format_measurement


class TestUnits:
    def test_mm_to_meters(self):
        result = convert_length(1000, Unit.MILLIMETERS, Unit.METERS)
        assert abs(result - 1.0) < 1e-9

    def test_inches_to_mm(self):
        result = convert_length(1.0, "in", "mm")
        assert abs(result - 25.4) < 1e-6

    def test_area_conversion_is_squared(self):
        result = convert_area(1.0, "m", "cm")
        assert abs(result - 10000.0) < 1e-6

    def test_parse_known_tag(self):
        assert Unit.parse("ft") is Unit.FEET
        assert Unit.parse(Unit.METERS) is Unit.METERS

    def test_parse_unknown_tag(self):
        with pytest.raises(InvalidCalibrationInput):
            Unit.parse("furlong")


class TestFormatMeasurement:
    def test_missing_value(self):
        assert format_measurement(None, "m", "distance") == "-"

    def test_decimals_shrink_with_magnitude(self):
        assert format_measurement(0.456, "m", "distance") == "0.46 m"
        assert format_measurement(4.56, "m", "distance") == "4.6 m"
        assert format_measurement(45.6, "m", "perimeter") == "46 m"

    def test_area_suffix(self):
        assert format_measurement(2.5, "m", "area") == "2.5 m²"

    def test_count(self):
        assert format_measurement(3.0, None, "count") == "3 pcs"

    def test_uncalibrated_value_has_no_unit(self):
        assert format_measurement(0.5, None, "distance") == "0.50"


class TestPoint:
    def test_coerce_forms(self):
        assert Point.coerce((0.1, 0.2)) == Point(0.1, 0.2)
        assert Point.coerce({"x": 0.1, "y": 0.2}) == Point(0.1, 0.2)
        p = Point(0.3, 0.4)
        assert Point.coerce(p) is p

    def test_coerce_malformed(self):
        with pytest.raises(InvalidGeometry):
            Point.coerce({"x": 0.1})
        with pytest.raises(InvalidGeometry):
            Point.coerce((0.1, 0.2, 0.3))

    def test_points_must_be_sequence(self):
        with pytest.raises(InvalidGeometry):
            geometry.coerce_points(None)


class TestGeometry:
    def test_validate_normalized_accepts_edges(self):
        geometry.validate_normalized([Point(0.0, 0.0), Point(1.0, 1.0)])

    @pytest.mark.parametrize("bad", [Point(-0.01, 0.5), Point(0.5, 1.01), Point(math.nan, 0.5), Point(0.5, math.inf)])
    def test_validate_normalized_rejects(self, bad):
        with pytest.raises(OutOfBounds):
            geometry.validate_normalized([Point(0.5, 0.5), bad])

    def test_normalized_length(self):
        assert abs(geometry.normalized_length(Point(0, 0), Point(0.3, 0.4)) - 0.5) < 1e-12

    def test_normalized_length_keeps_subnormal_segments(self):
        assert geometry.normalized_length(Point(0, 0), Point(5e-324, 0)) > 0
        assert geometry.normalized_length(Point(0, 0), Point(0, 1e-200)) == 1e-200

    def test_polyline_length(self):
        pts = [Point(0, 0), Point(0.3, 0), Point(0.3, 0.4)]
        assert abs(geometry.polyline_length(pts) - 0.7) < 1e-12
        assert geometry.polyline_length(pts[:1]) == 0.0

    def test_closed_perimeter_wraps(self):
        pts = [Point(0, 0), Point(0.3, 0), Point(0.3, 0.4)]
        assert abs(geometry.closed_perimeter(pts) - 1.2) < 1e-12

    def test_shoelace_square(self):
        square = [Point(0.1, 0.1), Point(0.3, 0.1), Point(0.3, 0.3), Point(0.1, 0.3)]
        assert abs(geometry.shoelace_area(square) - 0.04) < 1e-12

    def test_shoelace_order_independent_sign(self):
        tri = [Point(0, 0), Point(0.5, 0), Point(0, 0.5)]
        assert abs(geometry.shoelace_area(tri) - geometry.shoelace_area(tri[::-1])) < 1e-12

    def test_shoelace_collinear_is_zero(self):
        line = [Point(0.1, 0.1), Point(0.2, 0.2), Point(0.3, 0.3)]
        assert abs(geometry.shoelace_area(line)) < 1e-12

    def test_centroid(self):
        c = geometry.centroid([Point(0, 0), Point(1, 0), Point(1, 1), Point(0, 1)])
        assert c == Point(0.5, 0.5)
        assert geometry.centroid([]) == Point(0.0, 0.0)

    def test_pixel_helpers(self):
        p1, p2 = Point(0.0, 0.0), Point(0.5, 0.5)
        assert geometry.to_pixels(p2, 800, 600) == (400.0, 300.0)
        assert abs(geometry.pixel_distance(p1, p2, 800, 600) - 500.0) < 1e-9
        tri = [Point(0, 0), Point(1, 0), Point(0, 1)]
        assert abs(geometry.pixel_area(tri, 100, 50) - 2500.0) < 1e-9
        assert abs(geometry.pixel_polyline_length(tri[:2], 100, 50) - 100.0) < 1e-9

    def test_pixel_helpers_need_page_size(self):
        with pytest.raises(InvalidGeometry):
            geometry.pixel_distance(Point(0, 0), Point(1, 1), 0, 100)

    def test_measure_distance(self):
        value = geometry.measure("distance", [Point(0.1, 0.1), Point(0.3, 0.1)], 0.04)
        assert value == pytest.approx(5.0)

    def test_measure_area_divides_by_ratio_squared(self):
        square = [Point(0.1, 0.1), Point(0.3, 0.1), Point(0.3, 0.3), Point(0.1, 0.3)]
        assert geometry.measure(MeasurementType.AREA, square, 0.04) == pytest.approx(25.0)

    def test_measure_perimeter(self):
        square = [Point(0.1, 0.1), Point(0.3, 0.1), Point(0.3, 0.3), Point(0.1, 0.3)]
        assert geometry.measure("perimeter", square, 0.04) == pytest.approx(20.0)

    def test_measure_count_needs_no_ratio(self):
        assert geometry.measure("count", [Point(0.1, 0.1)] * 4, None) == 4.0

    def test_measure_without_ratio(self):
        assert geometry.measure("distance", [Point(0, 0), Point(1, 1)], None) is None


class TestRecords:
    def test_calibration_record_uses_legacy_column(self):
        cal = ScaleCalibration(
            document_id="D", page_number=1, point1=Point(0.1, 0.1), point2=Point(0.3, 0.1),
            known_distance=5.0, unit="m", ratio_per_normalized_unit=0.04,
        )
        record = cal.to_record()
        assert record["pixels_per_unit"] == 0.04
        assert "id" not in record
        assert ScaleCalibration.from_record(record) == cal

    def test_measurement_reads_json_string_points(self):
        record = {
            "id": "m1", "document_id": "D", "project_id": "P", "type": "area", "page_number": 2,
            "points": '[{"x": 0.1, "y": 0.2}, {"x": 0.3, "y": 0.2}, {"x": 0.3, "y": 0.4}]',
            "color": None,
        }
        m = DocumentMeasurement.from_record(record)
        assert m.type is MeasurementType.AREA
        assert m.points[2] == Point(0.3, 0.4)
        assert m.color == "blue"
        assert not m.is_calibrated

    def test_min_points(self):
        assert MeasurementType.DISTANCE.min_points == 2
        assert MeasurementType.AREA.min_points == 3
        assert MeasurementType.PERIMETER.min_points == 2
        assert MeasurementType.COUNT.min_points == 1

    def test_unknown_type_and_color(self):
        with pytest.raises(InvalidGeometry):
            MeasurementType.parse("volume")
        with pytest.raises(InvalidAnnotationField):
            MeasurementColor.parse("pink")
