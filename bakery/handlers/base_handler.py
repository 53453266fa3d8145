# bakery/handlers/base_handler.py
from decimal import Decimal
from typing import Any, Optional
from fastapi import APIRouter, Header
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from ..errors import Unauthorized
from ..models.admin import AdminPrincipal
from ..utils.security import extract_bearer_token, verify_admin_token

class BaseHandler:
    """Base class for the HTTP handlers"""
    def __init__(self, services):
        self.services = services
        self.router = APIRouter()
        self.setup_routes()

    def setup_routes(self):
        raise NotImplementedError

    @staticmethod
    def success(data: Any = None, status_code: int = 200) -> JSONResponse:
        """Standard envelope; money is rendered as strings"""
        return JSONResponse(
            status_code=status_code,
            content={
                "success": True,
                "data": jsonable_encoder(data, custom_encoder={Decimal: str}),
            },
        )

    @staticmethod
    async def require_admin(authorization: Optional[str] = Header(None)) -> AdminPrincipal:
        """Dependency guarding back-office routes"""
        token = extract_bearer_token(authorization)
        principal = verify_admin_token(token) if token else None
        if principal is None:
            raise Unauthorized()
        return principal
