from typing import Dict, Iterable

from ....core.domain.enums.trade_enums import Venue
from .base import VenueAdapter
from .unsupported import UnsupportedVenueAdapter


class VenueAdapterRegistry:
    """
    Venue -> adapter lookup. Venues without a registered adapter resolve to
    an UnsupportedVenueAdapter.
    """

    def __init__(self, adapters: Iterable[VenueAdapter] = ()):
        self._adapters: Dict[Venue, VenueAdapter] = {a.venue: a for a in adapters}

    def register(self, adapter: VenueAdapter) -> None:
        self._adapters[adapter.venue] = adapter

    def get(self, venue: Venue) -> VenueAdapter:
        adapter = self._adapters.get(venue)
        if adapter is None:
            adapter = UnsupportedVenueAdapter(venue)
            self._adapters[venue] = adapter
        return adapter
