import os

# ----- Persistence / ephemeral store -----
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./chopnow.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# ----- Tokens -----
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_IN = int(os.getenv("JWT_EXPIRES_IN", str(7 * 24 * 60 * 60)))

# ----- Auth throttling (seconds) -----
AUTH_RATE_LIMIT_MAX = int(os.getenv("AUTH_RATE_LIMIT_MAX", "5"))
AUTH_RATE_LIMIT_WINDOW = int(os.getenv("AUTH_RATE_LIMIT_WINDOW", str(15 * 60)))
LOGIN_MAX_FAILURES = int(os.getenv("LOGIN_MAX_FAILURES", "5"))
LOGIN_FAILURE_WINDOW = int(os.getenv("LOGIN_FAILURE_WINDOW", str(15 * 60)))
LOCKOUT_SECONDS = int(os.getenv("LOCKOUT_SECONDS", str(30 * 60)))
SESSION_TTL = int(os.getenv("SESSION_TTL", str(7 * 24 * 60 * 60)))

# ----- Orders -----
TAX_RATE = os.getenv("TAX_RATE", "0.08")

# ----- Web -----
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
