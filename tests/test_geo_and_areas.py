import pytest

from washly.services.area_resolver import (
    AreaResolver, BASE_PRICE, ZONE_MULTIPLIER, ZONE_PRICE
)
from washly.services.errors import PricingError, PricingErrorKind
from washly.utils.geo import (
    haversine_km, is_valid_coordinate, parse_geojson_polygon,
    point_in_polygon, polygon_area_km2
)

# Roughly 2km x 2km around downtown Dubai, GeoJSON order [lng, lat]
SQUARE = {
    'type': 'Polygon',
    'coordinates': [[
        [55.26, 25.19], [55.28, 25.19], [55.28, 25.21], [55.26, 25.21], [55.26, 25.19]
    ]]
}


class TestGeometry:

    def test_haversine_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)
        assert haversine_km(25.2, 55.27, 25.2, 55.27) == 0

    @pytest.mark.parametrize('lat, lng, valid', [
        (25.2, 55.27, True),
        (90, 180, True),
        (91, 0, False),
        (0, -181, False),
        (float('nan'), 0, False),
        (True, 0, False),
        ('25.2', 55.27, False),
    ])
    def test_coordinate_validation(self, lat, lng, valid):
        assert is_valid_coordinate(lat, lng) is valid

    def test_parse_polygon_swaps_axes_and_drops_closing_point(self):
        ring = parse_geojson_polygon(SQUARE)
        assert ring == [(25.19, 55.26), (25.19, 55.28), (25.21, 55.28), (25.21, 55.26)]

    @pytest.mark.parametrize('value', [
        None,
        '',
        'not json',
        {'type': 'Point', 'coordinates': [55.2, 25.2]},
        {'type': 'Polygon', 'coordinates': [[[55.2, 25.2], [55.3, 25.2], [55.2, 25.2]]]},
        {'type': 'Polygon', 'coordinates': [[[55.2, 95.0], [55.3, 25.2], [55.3, 25.3]]]},
    ])
    def test_parse_polygon_rejects_unusable_values(self, value):
        assert parse_geojson_polygon(value) is None

    def test_point_in_polygon(self):
        ring = parse_geojson_polygon(SQUARE)
        assert point_in_polygon(25.2, 55.27, ring) is True
        assert point_in_polygon(25.3, 55.27, ring) is False

    def test_polygon_area(self):
        ring = parse_geojson_polygon(SQUARE)
        assert polygon_area_km2(ring) == pytest.approx(2.21 * 2.01, rel=0.05)


class TestAreaResolution:

    def test_no_zone_returns_none(self, app, service):
        assert AreaResolver.resolve_area_pricing(service, 10.0, 10.0) is None

    def test_invalid_coordinates(self, app, service):
        with pytest.raises(PricingError) as exc:
            AreaResolver.resolve_area_pricing(service, 120.0, 10.0)
        assert exc.value.kind == PricingErrorKind.INVALID_COORDINATES
        assert exc.value.status == 400

    def test_smallest_zone_wins(self, app, make_area, service):
        make_area(radius_km=50, name='Emirate')
        city = make_area(radius_km=5, name='City')
        make_area(radius_km=20, name='Metro')

        for _ in range(3):
            area = AreaResolver.resolve_area(25.2, 55.27)
            assert area.id == city.id

    def test_polygon_inside_circle_wins(self, app, make_area):
        make_area(radius_km=10, name='Circle')
        square = make_area(polygon=SQUARE, name='Square')

        assert AreaResolver.resolve_area(25.2, 55.27).id == square.id

    def test_equal_size_falls_back_to_priority(self, app, make_area):
        make_area(radius_km=5, priority=0, name='Low')
        high = make_area(radius_km=5, priority=10, name='High')

        assert AreaResolver.resolve_area(25.2, 55.27).id == high.id

    def test_inactive_zone_is_ignored(self, app, make_area):
        make_area(radius_km=5, active=False)
        assert AreaResolver.resolve_area(25.2, 55.27) is None

    def test_service_area_price_wins(self, app, make_area, make_area_price, service):
        area = make_area(radius_km=5, price_multiplier=2.0)
        make_area_price(service, area, price_cents=12000, discount_percentage=10)

        pricing = AreaResolver.resolve_area_pricing(service, 25.2, 55.27)
        assert pricing.source == ZONE_PRICE
        assert pricing.price_cents == 12000
        assert pricing.discount_percentage == 10
        assert pricing.area_id == area.id

    def test_multiplier_keeps_service_discount(self, app, make_area, service):
        make_area(radius_km=5, price_multiplier=1.25)

        pricing = AreaResolver.resolve_area_pricing(service, 25.2, 55.27)
        assert pricing.source == ZONE_MULTIPLIER
        assert pricing.price_cents == 12500
        assert pricing.discount_percentage == 20

    def test_zone_without_override_reports_area(self, app, make_area, service):
        area = make_area(radius_km=5, name='Downtown')

        pricing = AreaResolver.resolve_area_pricing(service, 25.2, 55.27)
        assert pricing.source == BASE_PRICE
        assert pricing.price_cents == 10000
        assert pricing.area_name == 'Downtown'
        assert pricing.area_id == area.id

    def test_inactive_area_price_is_ignored(self, app, make_area, make_area_price, service):
        area = make_area(radius_km=5)
        make_area_price(service, area, price_cents=1, active=False)

        assert AreaResolver.resolve_area_pricing(service, 25.2, 55.27).source == BASE_PRICE


class TestZoneLookup:

    def test_lookup_inside_zone(self, app, make_area):
        area = make_area(polygon=SQUARE, name='Downtown')

        result = AreaResolver.resolve_zone(25.2, 55.27)
        assert result['is_supported'] is True
        assert result['zone'] == {'id': area.id, 'code': area.code, 'name': 'Downtown'}
        assert result['resolution_method'] == 'POLYGON'
        assert result['coordinates'] == {'lat': 25.2, 'lng': 55.27}

    def test_lookup_outside_every_zone(self, app, make_area):
        make_area(radius_km=1)

        result = AreaResolver.resolve_zone(24.0, 54.0)
        assert result['is_supported'] is False
        assert result['zone'] is None
        assert result['resolution_method'] == 'NONE'

    def test_lookup_and_pricing_agree(self, app, make_area, make_area_price, service):
        make_area(radius_km=30, name='Wide')
        narrow = make_area(radius_km=3, name='Narrow')
        make_area_price(service, narrow, price_cents=9000)

        zone = AreaResolver.resolve_zone(25.2, 55.27)['zone']
        pricing = AreaResolver.resolve_area_pricing(service, 25.2, 55.27)
        assert zone['id'] == pricing.area_id == narrow.id

    def test_prices_by_location(self, app, make_area, make_area_price, make_service):
        wash = make_service(price_cents=5000, name='Wash')
        polish = make_service(price_cents=8000, name='Polish')
        area = make_area(radius_km=5)
        make_area_price(wash, area, price_cents=4500)

        result = AreaResolver.prices_by_location(25.2, 55.27, [wash.id, polish.id, 'missing'])
        prices = {entry['serviceId']: entry for entry in result['prices']}

        assert prices[wash.id]['priceCents'] == 4500
        assert prices[wash.id]['source'] == ZONE_PRICE
        assert prices[polish.id]['priceCents'] == 8000
        assert prices[polish.id]['source'] == BASE_PRICE
        assert prices['missing']['available'] is False
        assert result['zone']['id'] == area.id
