"""
Area/Zone Resolver
Finds the geo-fenced zone that owns a point and the price a service has there
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from washly.models.area import Area, ServiceAreaPrice
from washly.models.service import Service
from washly.services.errors import PricingError, PricingErrorKind
from washly.services.pricing import round_cents
from washly.utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

ZONE_PRICE = 'ZONE_PRICE'
ZONE_MULTIPLIER = 'ZONE_MULTIPLIER'
BASE_PRICE = 'BASE_PRICE'


@dataclass(frozen=True)
class AreaPricing:
    price_cents: int
    discount_percentage: Optional[float]
    area_id: Optional[str]
    area_name: Optional[str]
    source: str

    def to_dict(self):
        return {
            'priceCents': self.price_cents,
            'discountPercentage': self.discount_percentage,
            'areaId': self.area_id,
            'areaName': self.area_name,
            'source': self.source
        }


def _specificity_key(area: Area):
    # Smallest zone first, then higher priority, then oldest, then id
    created_at = area.created_at.replace(tzinfo=None) if area.created_at else datetime.min
    return (area.area_km2(), -(area.priority or 0), created_at, area.id)


class AreaResolver:
    """Resolve zones and zone prices with one containment algorithm"""

    @staticmethod
    def validate_coordinates(latitude, longitude):
        if not is_valid_coordinate(latitude, longitude):
            raise PricingError(
                PricingErrorKind.INVALID_COORDINATES,
                'Latitude must be within [-90, 90] and longitude within [-180, 180]'
            )

    @staticmethod
    def find_containing_areas(latitude: float, longitude: float) -> List[Area]:
        """Active areas containing the point, most specific first"""
        areas = Area.query.filter_by(active=True).all()
        matches = [area for area in areas if area.contains(latitude, longitude)]
        return sorted(matches, key=_specificity_key)

    @staticmethod
    def resolve_area(latitude: float, longitude: float) -> Optional[Area]:
        AreaResolver.validate_coordinates(latitude, longitude)
        matches = AreaResolver.find_containing_areas(latitude, longitude)
        if not matches:
            logger.debug(f"No zone contains ({latitude}, {longitude})")
            return None

        area = matches[0]
        if len(matches) > 1:
            logger.debug(
                f"{len(matches)} zones contain ({latitude}, {longitude}); "
                f"picked {area.code} as the most specific"
            )
        return area

    @staticmethod
    def resolve_zone(latitude, longitude) -> Dict:
        """Serviceability lookup for a point"""
        area = AreaResolver.resolve_area(latitude, longitude)

        if area:
            method = area.shape.upper()
            explanation = (
                f"Point is inside the {area.shape} of zone {area.name}"
            )
            zone = {'id': area.id, 'code': area.code, 'name': area.name}
        else:
            method = 'NONE'
            explanation = 'Point is outside every active service zone'
            zone = None

        return {
            'coordinates': {'lat': latitude, 'lng': longitude},
            'zone': zone,
            'is_supported': area is not None,
            'service_available': area is not None,
            'resolution_method': method,
            'explanation': explanation,
            'resolved_at': datetime.now(timezone.utc).isoformat()
        }

    @staticmethod
    def price_in_area(service: Service, area: Area) -> AreaPricing:
        """Price of a service inside a known area"""
        area_price = ServiceAreaPrice.query.filter_by(
            service_id=service.id,
            area_id=area.id,
            active=True
        ).first()

        if area_price:
            return AreaPricing(
                price_cents=area_price.price_cents,
                discount_percentage=area_price.discount_percentage,
                area_id=area.id,
                area_name=area.name,
                source=ZONE_PRICE
            )

        multiplier = area.price_multiplier
        if multiplier is not None and multiplier >= 0 and multiplier != 1:
            return AreaPricing(
                price_cents=round_cents(service.price_cents * multiplier),
                discount_percentage=service.discount_percentage,
                area_id=area.id,
                area_name=area.name,
                source=ZONE_MULTIPLIER
            )

        return AreaPricing(
            price_cents=service.price_cents,
            discount_percentage=service.discount_percentage,
            area_id=area.id,
            area_name=area.name,
            source=BASE_PRICE
        )

    @staticmethod
    def resolve_area_pricing(service: Service, latitude, longitude) -> Optional[AreaPricing]:
        """
        Zone override for a service at a point.

        Returns None when no zone contains the point; the caller then keeps the
        service's own price and discount.
        """
        area = AreaResolver.resolve_area(latitude, longitude)
        if area is None:
            return None

        pricing = AreaResolver.price_in_area(service, area)
        logger.debug(
            f"Service {service.id} at ({latitude}, {longitude}) priced from "
            f"{pricing.source} in zone {area.code}: {pricing.price_cents}"
        )
        return pricing

    @staticmethod
    def prices_by_location(latitude, longitude, service_ids: List[str]) -> Dict:
        """Resolved unit price for each requested service at a point"""
        area = AreaResolver.resolve_area(latitude, longitude)

        services = Service.query.filter(
            Service.id.in_(service_ids),
            Service.active.is_(True)
        ).all()
        by_id = {service.id: service for service in services}

        prices = []
        for service_id in service_ids:
            service = by_id.get(service_id)
            if service is None:
                prices.append({'serviceId': service_id, 'available': False})
                continue

            if area:
                pricing = AreaResolver.price_in_area(service, area)
            else:
                pricing = AreaPricing(
                    price_cents=service.price_cents,
                    discount_percentage=service.discount_percentage,
                    area_id=None,
                    area_name=None,
                    source=BASE_PRICE
                )

            entry = pricing.to_dict()
            entry['serviceId'] = service.id
            entry['serviceName'] = service.name
            entry['available'] = True
            prices.append(entry)

        return {
            'coordinates': {'lat': latitude, 'lng': longitude},
            'zone': {'id': area.id, 'code': area.code, 'name': area.name} if area else None,
            'prices': prices
        }
