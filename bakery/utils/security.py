# bakery/utils/security.py
import base64
import hashlib
import hmac
import secrets
import time
from typing import Optional
from uuid import UUID
from ..config import Config
from ..models.admin import AdminPrincipal

PBKDF2_ITERATIONS = 260_000

def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Salted PBKDF2-SHA256, stored as pbkdf2_sha256$iterations$salt$hash"""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${base64.b64encode(digest).decode()}"

def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = stored.split("$")
    except (AttributeError, ValueError):
        return False
    if algorithm != "pbkdf2_sha256":
        return False

    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(base64.b64encode(digest).decode(), expected)

def _sign(message: str, secret: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()

def generate_admin_token(admin_id: UUID, role: str, secret: Optional[str] = None,
                         issued_at: Optional[int] = None) -> str:
    """Bearer token for the back-office: admin_id:role:issued_at:signature"""
    secret = secret or Config.SECRET_KEY
    timestamp = int(time.time()) if issued_at is None else issued_at
    message = f"{admin_id}:{role}:{timestamp}"
    return f"{message}:{_sign(message, secret)}"

def verify_admin_token(token: str, secret: Optional[str] = None,
                       ttl: Optional[int] = None) -> Optional[AdminPrincipal]:
    """Return the principal for a valid, unexpired token, else None"""
    secret = secret or Config.SECRET_KEY
    ttl = Config.TOKEN_TTL_SECONDS if ttl is None else ttl
    try:
        message, signature = token.rsplit(":", 1)
        admin_id, role, timestamp = message.split(":")
        issued_at = int(timestamp)
    except (AttributeError, ValueError):
        return None

    if not hmac.compare_digest(signature, _sign(message, secret)):
        return None

    if int(time.time()) - issued_at > ttl:
        return None

    try:
        return AdminPrincipal(admin_id=UUID(admin_id), role=role)
    except ValueError:
        return None

def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
