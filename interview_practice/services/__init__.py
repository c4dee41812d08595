# noqa
from interview_practice.services.session_service import MessageResult, SessionService
from interview_practice.services.analytics_service import AnalyticsService

__all__ = ["MessageResult", "SessionService", "AnalyticsService"]
