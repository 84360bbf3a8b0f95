import logging
import os

import structlog
from dotenv import load_dotenv

load_dotenv()

# ----------------------- Environment -----------------------
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "proitmarket")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))

RESEND_API_KEY = (os.getenv("RESEND_API_KEY") or "").strip()
EMAIL_FROM = os.getenv("EMAIL_FROM", "ProitMarket <noreply@proitmarket.com>")

AWS_BUCKET_NAME = os.getenv("AWS_BUCKET_NAME")
AWS_REGION = os.getenv("AWS_REGION")
AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY")
AWS_SECRET_KEY = os.getenv("AWS_SECRET_KEY")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ----------------------- Business rules -----------------------
TAX_RATE = 0.10
FREE_SHIPPING_THRESHOLD = 1000
SHIPPING_FEE = 50

OTP_LENGTH = 4
OTP_EXPIRE_MINUTES = 10

BUY_NOW_TTL_SECONDS = 60 * 60
RECENTLY_VIEWED_LIMIT = 10
MAX_ADDRESSES = 3
TOP_CATEGORY_COUNT = 6
WRITE_ATTEMPTS = 3

DAILY_OFFER_TYPE = "dailyOffer"
BEST_SELLER_TYPE = "bestSeller"
DAILY_OFFER_HOURS = 24
BEST_SELLER_DAYS = 30


def configure_logging() -> None:
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
