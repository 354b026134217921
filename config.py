from dotenv import load_dotenv
import os

load_dotenv()  # Load variables from .env file


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# JWT configuration
SECRET_KEY = os.getenv("SECRET_KEY", "default-secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Session cookie
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "token")
COOKIE_SECURE = _flag("COOKIE_SECURE")

# Server
DATABASE_PATH = os.getenv("DATABASE_PATH", "events.db")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
SEED_MOCK_DATA = _flag("SEED_MOCK_DATA")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Client
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))
SESSION_CACHE_PATH = os.getenv("SESSION_CACHE_PATH", os.path.expanduser("~/.eventhub/session.json"))
