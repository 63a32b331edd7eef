"""Illustration gallery for trips that have no images of their own."""

import hashlib
from typing import Any, Dict, List

GENERIC_TRIP_IMAGES = [
    {
        "url": "https://picsum.photos/seed/grenselos1/1200/800",
        "title": "Utsikt over fjell og dal",
        "caption": "Illustrasjonsfoto – generisk reisebilde.",
    },
    {
        "url": "https://picsum.photos/seed/grenselos2/1200/800",
        "title": "Kystlinje og hav",
        "caption": "Illustrasjonsfoto – inspirasjon til kystreiser.",
    },
    {
        "url": "https://picsum.photos/seed/grenselos3/1200/800",
        "title": "Bygate på kveldstid",
        "caption": "Illustrasjonsfoto – storbyfølelse.",
    },
    {
        "url": "https://picsum.photos/seed/grenselos4/1200/800",
        "title": "Små vei og åpent landskap",
        "caption": "Illustrasjonsfoto – roadtrip-stemning.",
    },
]


def generic_gallery(count: int = 3, seed: str = "") -> List[Dict[str, Any]]:
    """Pick ``count`` generic images. The same seed always yields the same selection."""
    n = max(1, min(int(count or 3), len(GENERIC_TRIP_IMAGES)))
    offset = int(hashlib.sha1(seed.encode("utf-8")).hexdigest(), 16) % len(GENERIC_TRIP_IMAGES)
    rotated = GENERIC_TRIP_IMAGES[offset:] + GENERIC_TRIP_IMAGES[:offset]
    return [
        {**image, "source": "fallback", "stopIndex": index, "attribution": None}
        for index, image in enumerate(rotated[:n])
    ]
