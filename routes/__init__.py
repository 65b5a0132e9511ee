from . import itinerary
from . import stops
from . import accommodations
from . import activities
from . import itinerary_invites
from . import user_invitations
from . import files
from . import notes
from . import session

__all__ = [
    "itinerary",
    "stops",
    "accommodations",
    "activities",
    "itinerary_invites",
    "user_invitations",
    "files",
    "notes",
    "session",
]
