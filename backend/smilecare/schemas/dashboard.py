from pydantic import BaseModel


#today's appointment counts by status
class DashboardStats(BaseModel):
    today_patients: int
    completed: int
    in_progress: int
    pending: int
