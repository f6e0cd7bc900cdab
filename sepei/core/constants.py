"""Application constants.

Magic strings and numbers shared by the voting core, the session guard and
the API layer.
"""

# Poll kinds. They only change the label shown to members.
POLL_KINDS = ("votacion", "encuesta", "referendum")
DEFAULT_POLL_KIND = "votacion"

# Derived poll status, computed from the open/close window
STATUS_SCHEDULED = "scheduled"
STATUS_ACTIVE = "active"
STATUS_CLOSED = "closed"

# Every poll needs at least this many options
MIN_POLL_OPTIONS = 2
MAX_POLL_OPTIONS = 20

# Session tokens
SESSION_DURATION_DAYS = 7
SESSION_TOKEN_BYTES = 32

# Admin panel JWT expiration in minutes (8 hours)
ACCESS_TOKEN_EXPIRE_MINUTES = 480

# Passwords for traditional registration
MIN_PASSWORD_LENGTH = 8
