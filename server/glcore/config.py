import os
from decimal import Decimal


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./glcore.db")
SQL_ECHO = _bool_env("SQL_ECHO")

SECRET_KEY = os.getenv("SECRET_KEY", "glcore-dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 12)))

# 0 disables the bound.
REPORT_QUERY_TIMEOUT_SECONDS = Decimal(os.getenv("REPORT_QUERY_TIMEOUT_SECONDS", "30"))
CASH_FLOW_CLASSIFICATION_PATH = os.getenv("CASH_FLOW_CLASSIFICATION_PATH")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]
