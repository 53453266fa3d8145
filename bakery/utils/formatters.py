# bakery/utils/formatters.py
from datetime import datetime
from decimal import Decimal
from typing import Optional
import pytz
from ..config import Config

def format_price(amount: Decimal, currency: Optional[str] = None) -> str:
    """5100 -> '5 100 XOF'"""
    text = f"{Decimal(amount):,.0f}".replace(",", " ")
    return f"{text} {currency or Config.CURRENCY}"

def format_datetime(dt: datetime) -> str:
    """Shop-local date and time"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    local_time = dt.astimezone(local_tz)
    return local_time.strftime("%d/%m/%Y %H:%M")

def format_phone(phone: str, country_code: Optional[str] = None) -> str:
    """Normalize a customer phone number to international digits"""
    country_code = country_code or Config.SMS_COUNTRY_CODE
    cleaned = "".join(ch for ch in phone if ch not in " -()")
    if cleaned.startswith("+"):
        return cleaned[1:]
    if len(cleaned) == 8:
        return f"{country_code}{cleaned}"
    return cleaned
