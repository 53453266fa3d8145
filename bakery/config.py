# bakery/config.py
import os
import logging
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv
from typing import List

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration settings for the shop"""

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # Admin session settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    TOKEN_TTL_SECONDS: int = int(os.getenv("TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))

    # Store settings
    APP_URL: str = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
    STORE_NAME: str = os.getenv("STORE_NAME", "Ma Boulangerie")
    CURRENCY: str = os.getenv("CURRENCY", "XOF")
    DELIVERY_FEE: Decimal = Decimal(os.getenv("DELIVERY_FEE", "2000"))

    # Payment settings
    PAYMENT_PROVIDER: str = os.getenv("PAYMENT_PROVIDER", "paydunya")
    PAYMENT_SANDBOX: bool = _env_bool("PAYMENT_SANDBOX", "true")
    PAYMENT_TIMEOUT_SECONDS: float = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))
    PAYDUNYA_MASTER_KEY: str = os.getenv("PAYDUNYA_MASTER_KEY", "")
    PAYDUNYA_PRIVATE_KEY: str = os.getenv("PAYDUNYA_PRIVATE_KEY", "")
    PAYDUNYA_TOKEN: str = os.getenv("PAYDUNYA_TOKEN", "")
    FLUTTERWAVE_SECRET_KEY: str = os.getenv("FLUTTERWAVE_SECRET_KEY", "")
    FLUTTERWAVE_WEBHOOK_HASH: str = os.getenv("FLUTTERWAVE_WEBHOOK_HASH", "")

    # Notification settings
    TELEGRAM_TOKEN: str = os.getenv("TELEGRAM_TOKEN", "")
    ADMIN_CHAT_IDS: List[int] = [
        int(id_) for id_ in os.getenv("ADMIN_CHAT_IDS", "").split(",")
        if id_.strip().lstrip("-").isdigit()
    ]
    BREVO_API_KEY: str = os.getenv("BREVO_API_KEY", "")
    SMS_SENDER: str = os.getenv("SMS_SENDER", "Boulangerie")
    SMS_COUNTRY_CODE: str = os.getenv("SMS_COUNTRY_CODE", "226")

    # Order tracking lookups allowed per client address and window
    LOOKUP_RATE_LIMIT: int = int(os.getenv("LOOKUP_RATE_LIMIT", "5"))
    LOOKUP_RATE_WINDOW: int = int(os.getenv("LOOKUP_RATE_WINDOW", "600"))

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "Africa/Ouagadougou")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Paths
    LOG_DIR = BASE_DIR / "logs"

    @classmethod
    def validate(cls):
        """Fail fast on settings the server cannot run without"""
        if not cls.DATABASE_URL:
            raise ValueError("No DATABASE_URL set in environment")
        if not cls.SECRET_KEY:
            raise ValueError("No SECRET_KEY set in environment")


def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_file = Config.LOG_DIR / "bakery.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    # Third-party libraries are chatty at INFO
    for name in ("aiohttp.access", "httpx", "telegram", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)
