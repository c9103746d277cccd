import os

from dotenv import load_dotenv

# Values from a local .env file fill in anything the environment leaves unset.
load_dotenv()


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./students-management.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "combined.log")
ERROR_LOG_FILE = os.getenv("ERROR_LOG_FILE", "error.log")
LOG_REDACT_FIELDS = set(_csv(os.getenv("LOG_REDACT_FIELDS", "password,token,secret")))

CORS_ORIGINS = _csv(os.getenv("CORS_ORIGINS", "*"))
