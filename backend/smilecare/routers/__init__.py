#router package initializer
#controls how API route modules are exposed and imported.
#Each imported router is renamed
from .users import router as users_router
from .patients import router as patients_router
from .appointments import router as appointments_router
from .encounters import router as encounters_router
from .prescriptions import router as prescriptions_router
from .audit import router as audit_router
from .uploads import router as uploads_router
from .dashboard import router as dashboard_router

#defines what is publicly exposed when someone imports this package
__all__ = [
    "users_router",
    "patients_router",
    "appointments_router",
    "encounters_router",
    "prescriptions_router",
    "audit_router",
    "uploads_router",
    "dashboard_router",
]
