"""
Places adapter (Foursquare Places search).

Unlike the other families this produces category counts and a weighted
amenity score instead of a time series.
"""

from typing import Any

from siteintel.normalize.config import (
    CATEGORY_WEIGHTS,
    DEFAULT_CATEGORY_WEIGHT,
    MAX_PLACES,
)
from siteintel.normalize.series import parse_number
from siteintel.normalize.types import AmenityProfile, CategoryCount, Place
from siteintel.services.errors import NormalizationError


def _to_place(item: dict[str, Any]) -> Place:
    categories = item.get("categories") or [{}]
    category = categories[0] if isinstance(categories[0], dict) else {}
    main = (item.get("geocodes") or {}).get("main") or {}
    location = item.get("location") or {}
    category_id = category.get("id")
    return Place(
        fsq_id=item.get("fsq_id"),
        name=item.get("name"),
        category_id=str(category_id) if category_id is not None else None,
        category=category.get("name"),
        distance_m=parse_number(item.get("distance")),
        lat=parse_number(main.get("latitude")),
        lng=parse_number(main.get("longitude")),
        address=location.get("formatted_address"),
    )


def normalize_places(
    payload: Any,
    *,
    upstream_id: str = "foursquare",
    label: str = "Nearby amenities",
    weights: dict[str, tuple[str, float]] | None = None,
    **_: Any,
) -> AmenityProfile:
    """Group places by primary category and score them with the weight table."""
    results = payload.get("results") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        raise NormalizationError("Places payload has no results list", service_id=upstream_id)

    table = weights or CATEGORY_WEIGHTS
    places = [_to_place(item) for item in results if isinstance(item, dict)]

    by_category: dict[str, CategoryCount] = {}
    for place in places:
        cat_id = place.category_id or "other"
        if cat_id not in by_category:
            known_name, weight = table.get(cat_id, (None, DEFAULT_CATEGORY_WEIGHT))
            by_category[cat_id] = CategoryCount(
                id=cat_id,
                name=place.category or known_name or "Other",
                count=0,
                weight=weight,
            )
        by_category[cat_id].count += 1

    categories = sorted(by_category.values(), key=lambda c: (-c.count, c.id))
    return AmenityProfile(
        label=label,
        upstream_id=upstream_id,
        categories=categories,
        places=places[:MAX_PLACES],
        total_places=len(places),
    )
