from . import auth
from . import promotions
from . import roles
from . import users

__all__ = [
    "auth",
    "promotions",
    "roles",
    "users",
]
