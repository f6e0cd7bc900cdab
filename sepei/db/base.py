"""Database base class and model imports."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import all models here for Alembic to detect them
from sepei.db.models.user import User  # noqa: F401, E402
from sepei.db.models.user_session import UserSession  # noqa: F401, E402
from sepei.db.models.poll import Poll  # noqa: F401, E402
from sepei.db.models.poll_option import PollOption  # noqa: F401, E402
from sepei.db.models.participation import Participation  # noqa: F401, E402
from sepei.db.models.ballot import Ballot  # noqa: F401, E402
