"""Entity services: repositories combined with the versioned cache."""

from vynox.services.ads import AdService
from vynox.services.connectivity import ConnectivityService
from vynox.services.countries import CityService, CountryService
from vynox.services.dashboard import DashboardService
from vynox.services.dropdowns import DropdownService
from vynox.services.faqs import FaqService
from vynox.services.feedback import FeedbackService
from vynox.services.pages import PageService
from vynox.services.servers import ServerCascade, ServerService

__all__ = [
    "AdService",
    "CityService",
    "ConnectivityService",
    "CountryService",
    "DashboardService",
    "DropdownService",
    "FaqService",
    "FeedbackService",
    "PageService",
    "ServerCascade",
    "ServerService",
]
