from repairdesk.models.repair import Repair
from repairdesk.models.user import User

__all__ = ["Repair", "User"]
