"""Global constants for the awardpicks package."""

# Collections
CEREMONIES_COLLECTION = "ceremonies"
CATEGORIES_COLLECTION = "categories"
COMPETITIONS_COLLECTION = "competitions"
PARTICIPANTS_COLLECTION = "participants"
VOTES_COLLECTION = "votes"
EVENT_TYPES_COLLECTION = "eventTypes"
USERS_COLLECTION = "users"

# Fields used by live queries
FIELD_USER_ID = "odUserId"
FIELD_CEREMONY_YEAR = "ceremonyYear"
FIELD_DATE = "date"
FIELD_DISPLAY_ORDER = "displayOrder"
FIELD_SCORE = "score"

INVITE_CODE_LENGTH = 6
UNKNOWN_EVENT_NAME = "Unknown Event"

# Cloud Functions
DEFAULT_FUNCTIONS_REGION = "asia-south1"
DEFAULT_FUNCTIONS_TIMEOUT = 30.0

# Seconds a caller waits for a write to show up on a live stream
WRITE_CONFIRM_TIMEOUT = 5.0
SSE_KEEPALIVE_SECONDS = 15.0
