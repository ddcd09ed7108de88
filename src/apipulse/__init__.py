"""Usage analytics dashboard for an API proxy backed by Analytics Engine."""

from apipulse.core.models import Period
from apipulse.service import AnalyticsService, Overview

__version__ = "0.1.0"

__all__ = ["AnalyticsService", "Overview", "Period", "__version__"]
