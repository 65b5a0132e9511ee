from models.Itinerary import Itinerary
from models.Stop import Stop
from models.Accommodation import Accommodation
from models.Activity import Activity
from models.ItineraryInvite import ItineraryInvite, InviteStatus, CollaboratorRole
from models.ItineraryCollaborator import ItineraryCollaborator
from models.Note import Note
from models.Attachment import Attachment

__all__ = [
    "Itinerary",
    "Stop",
    "Accommodation",
    "Activity",
    "ItineraryInvite",
    "InviteStatus",
    "CollaboratorRole",
    "ItineraryCollaborator",
    "Note",
    "Attachment",
]
