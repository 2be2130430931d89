"""Advertisement event tracking."""

from refledger.ads.catalog import list_active_ads
from refledger.ads.models import Ad, AdEvent, AdEventWindow
from refledger.ads.recorder import AdEventRecorder, ad_recorder

__all__ = ["Ad", "AdEvent", "AdEventRecorder", "AdEventWindow", "ad_recorder", "list_active_ads"]
