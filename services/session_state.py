"""
Per-user session state kept by the API between requests.

Holds the currently selected itinerary and whether the pending-invitation
prompt has already been shown. Prompt state expires after
`session_ttl_seconds` without a request.
"""
import logging
import threading
from typing import Dict, List, Optional, Protocol

from cachetools import TTLCache

from config import settings
from schemas import ItineraryRead

logger = logging.getLogger(__name__)


class SelectionStorage(Protocol):
    def load(self, user_id: str) -> Optional[str]: ...

    def save(self, user_id: str, itinerary_id: str) -> None: ...

    def delete(self, user_id: str) -> None: ...

    def forget_itinerary(self, itinerary_id: str) -> None: ...

    def clear(self) -> None: ...


class InMemorySelectionStorage:
    def __init__(self):
        self._selected: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._selected.get(user_id)

    def save(self, user_id: str, itinerary_id: str) -> None:
        with self._lock:
            self._selected[user_id] = itinerary_id

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._selected.pop(user_id, None)

    def forget_itinerary(self, itinerary_id: str) -> None:
        with self._lock:
            for user_id in [u for u, i in self._selected.items() if i == itinerary_id]:
                del self._selected[user_id]

    def clear(self) -> None:
        with self._lock:
            self._selected.clear()


class CurrentItinerary:
    """The itinerary a user is working on.

    Resolves to the saved selection while it is still accessible, otherwise
    to the first itinerary the user can see, otherwise to nothing.
    """

    def __init__(self, user_id: str, storage: SelectionStorage):
        self.user_id = user_id
        self.storage = storage

    def get(self, itineraries: List[ItineraryRead]) -> Optional[ItineraryRead]:
        saved = self.storage.load(self.user_id)
        if saved:
            for itinerary in itineraries:
                if itinerary.id == saved:
                    return itinerary
        return itineraries[0] if itineraries else None

    def set(self, itinerary_id: str) -> None:
        self.storage.save(self.user_id, itinerary_id)

    def clear(self) -> None:
        self.storage.delete(self.user_id)


class PendingInvitePresenter:
    """Decides when the pending-invitation prompt should be shown.

    It is shown the first time pending invites appear and not again until
    the pending count has dropped back to zero.
    """

    def __init__(self):
        self.presented = False

    def observe(self, pending_count: int) -> bool:
        if pending_count == 0:
            self.presented = False
            return False
        if self.presented:
            return False
        self.presented = True
        return True


class SessionRegistry:
    def __init__(self, selection_storage: SelectionStorage, ttl: float = 12 * 60 * 60, maxsize: int = 10000):
        self.selection_storage = selection_storage
        self._presenters: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def current_itinerary(self, user_id: str) -> CurrentItinerary:
        return CurrentItinerary(user_id, self.selection_storage)

    def invite_presenter(self, user_id: str) -> PendingInvitePresenter:
        with self._lock:
            presenter = self._presenters.get(user_id)
            if presenter is None:
                presenter = PendingInvitePresenter()
            # re-inserting refreshes the expiry
            self._presenters[user_id] = presenter
            return presenter

    def forget_itinerary(self, itinerary_id: str) -> None:
        """Drop every selection pointing at a deleted itinerary."""
        self.selection_storage.forget_itinerary(itinerary_id)

    def clear(self) -> None:
        with self._lock:
            self._presenters.clear()
        self.selection_storage.clear()


sessions = SessionRegistry(InMemorySelectionStorage(), ttl=settings.session_ttl_seconds)


def get_sessions() -> SessionRegistry:
    return sessions
