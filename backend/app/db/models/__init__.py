"""ORM models exposed for metadata discovery."""
from app.db.models.recommendation_record import RecommendationRecord
from app.db.models.survey import Survey
from app.db.models.user import User
from app.db.models.user_history import UserHistory

__all__ = [
    "RecommendationRecord",
    "Survey",
    "User",
    "UserHistory",
]
