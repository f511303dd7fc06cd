from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request

from rastuci.utils.enums import UserRole
from rastuci.utils.responses import fail

ADMIN_PREFIX = "/api/admin"

ACCESS_MATRIX = {
    UserRole.ADMIN.value: ["*"],  # full access
    UserRole.STAFF.value: ["/api/admin/dashboard", "/api/admin/orders"],
}


def is_allowed(role: str, path: str) -> bool:
    allowed_paths = ACCESS_MATRIX.get(role, [])
    return "*" in allowed_paths or any(path.startswith(p) for p in allowed_paths)


class AdminAuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path.startswith(ADMIN_PREFIX):
            role = (request.session.get("role") or "").strip().lower()

            if not role:
                return fail("No autorizado", 401, "UNAUTHORIZED")

            if not is_allowed(role, path):
                return fail("No tenés permisos para esta sección", 403, "FORBIDDEN")

        return await call_next(request)
