# storefront/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

COMMERCE_API_URL = os.getenv("COMMERCE_API_URL", "http://localhost:9000")
COMMERCE_STORE_PREFIX = os.getenv("COMMERCE_STORE_PREFIX", "/store")
PUBLISHABLE_API_KEY = os.getenv("PUBLISHABLE_API_KEY", "")
COMMERCE_HTTP_TIMEOUT = float(os.getenv("COMMERCE_HTTP_TIMEOUT", 10))

#memory | sql | redis
SLOT_BACKEND = os.getenv("SLOT_BACKEND", "sql")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///.local/storefront.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

REGION_UPDATE_ATTEMPTS = int(os.getenv("REGION_UPDATE_ATTEMPTS", 2))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
