"""
Venue registry - retail locations configured for this kiosk
"""
from dataclasses import dataclass
from typing import List, Optional

from .config import settings


@dataclass
class Venue:
    id: str
    name: str
    token: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.token and settings.INTEGRATOR_TOKEN)


def get_venue_list() -> List[Venue]:
    return [
        Venue(id=venue_id, name=name, token=settings.VENUE_TOKENS.get(venue_id, ""))
        for venue_id, name in settings.VENUES.items()
    ]


def get_venue_by_id(venue_id: str) -> Optional[Venue]:
    name = settings.VENUES.get(venue_id)
    if name is None:
        return None
    return Venue(id=venue_id, name=name, token=settings.VENUE_TOKENS.get(venue_id, ""))
