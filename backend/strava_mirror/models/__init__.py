from strava_mirror.models.user import User
from strava_mirror.models.strava_credentials import StravaCredentials
from strava_mirror.models.activity import Activity
from strava_mirror.models.photo import Photo

__all__ = [
    "User",
    "StravaCredentials",
    "Activity",
    "Photo",
]
