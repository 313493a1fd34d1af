import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")

# Serialize the create admission check per date inside this process
SERIALIZE_ADMISSION = _env_flag("SERIALIZE_ADMISSION", True)

# Re-run the conflict check on update (off to match the original behaviour)
CHECK_UPDATE_CONFLICTS = _env_flag("CHECK_UPDATE_CONFLICTS", False)

SQL_ECHO = _env_flag("SQL_ECHO", False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
