"""
Venue Schemas
"""
from pydantic import BaseModel

class VenueResponse(BaseModel):
    id: str
    name: str
    configured: bool

class VenueSelect(BaseModel):
    venue_id: str
