import os
import logging

import structlog
from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "salon_catalog")

# Auth
SECRET_KEY = os.getenv("JWT_SECRET", "supersecretkey")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 24 * 60
COOKIE_NAME = "token"
COOKIE_MAX_AGE = 7 * 24 * 60 * 60

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Email
BREVO_API_KEY = os.getenv("BREVO_API_KEY")
BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
EMAIL_SENDER = os.getenv("EMAIL_SENDER", "contact@ronyhair237.com")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", "RONY HAIR 237")
CONTACT_RECIPIENT = os.getenv("CONTACT_RECIPIENT", "contact@ronyhair237.com")
EMAIL_RETRIES = 3
EMAIL_TIMEOUT_SECONDS = 10

REVIEW_COOLDOWN_SECONDS = 60
PUBLIC_IMAGES_PER_CATEGORY = 20
PUBLIC_REVIEWS_LIMIT = 50
DASHBOARD_DAYS = 30

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if IS_PRODUCTION:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
