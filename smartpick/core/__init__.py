from smartpick.core.config import settings
from smartpick.core.database import get_db, Base, get_db_session
from smartpick.core.security import create_access_token, decode_token
