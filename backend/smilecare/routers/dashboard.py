from fastapi import APIRouter, Depends

from ..database import get_storage
from ..models import AppointmentStatus, User
from ..schemas.dashboard import DashboardStats
from ..storage import Storage
from ..storage.base import utcnow
from ..utils.deps import get_current_active_user

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

#Today's (UTC) appointment counts
@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Get today's appointment counts by status."""
    today = utcnow().date().isoformat()
    appointments = await storage.get_appointments_by_date(today)
    return DashboardStats(
        today_patients=len(appointments),
        completed=sum(1 for a in appointments if a.status == AppointmentStatus.COMPLETED),
        in_progress=sum(1 for a in appointments if a.status == AppointmentStatus.IN_PROGRESS),
        pending=sum(1 for a in appointments if a.status == AppointmentStatus.SCHEDULED),
    )
