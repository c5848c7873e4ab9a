"""Authentication / authorization.

Auth is deliberately small:

- Users table (email + username + bcrypt password hash + role)
- Stateless JWT bearer tokens (HS256, 30 days by default, no revocation)

Routes compose two FastAPI dependencies in a fixed order:

- `get_current_identity` (Auth Gate): `Authorization: Bearer <token>` -> Identity
- `require_roles(...)` (Role Gate): depends on the Auth Gate, checks the role
"""

from .deps import check_role, get_current_identity, require_business, require_roles
from .crud import create_user, login_user, register_user
from .security import Identity

__all__ = [
    "Identity",
    "check_role",
    "get_current_identity",
    "require_business",
    "require_roles",
    "create_user",
    "login_user",
    "register_user",
]
