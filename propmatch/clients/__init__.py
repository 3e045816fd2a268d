"""Client singletons for external API interactions."""
from propmatch.clients.google_maps_client import GoogleMapsClient
from propmatch.clients.regrid_client import RegridClient

__all__ = ["GoogleMapsClient", "RegridClient"]
