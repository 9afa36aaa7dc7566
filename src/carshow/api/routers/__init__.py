"""carshow API routers.

- auth: staff login, logout and identity
- events: registration review, gate operations and audit history
- staff: per-event staff assignment
- rounds: competition rounds
"""

from carshow.api.routers.auth import router as auth_router
from carshow.api.routers.events import router as events_router
from carshow.api.routers.rounds import router as rounds_router
from carshow.api.routers.staff import router as staff_router

__all__ = [
    "auth_router",
    "events_router",
    "rounds_router",
    "staff_router",
]
