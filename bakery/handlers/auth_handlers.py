# bakery/handlers/auth_handlers.py
from ..models.admin import LoginRequest
from .base_handler import BaseHandler

class AuthHandler(BaseHandler):
    def setup_routes(self):
        self.router.add_api_route("/api/auth/login", self.login, methods=["POST"])

    async def login(self, request: LoginRequest):
        result = await self.services.auth.login(request.email, request.password)
        return self.success(result)
