import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent))

# Default to in-memory SQLite and a throwaway secret for tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("DASHBOARD_CACHE_TTL", "30")
