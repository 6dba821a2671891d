from sqlalchemy import select
from sqlalchemy.orm import Session

from repairdesk.models.repair import Repair


def list_customer_mobiles(db: Session, business_id: str) -> list[str]:
    """Distinct non-empty customer mobiles of a business, in first-seen order."""
    stmt = (
        select(Repair.customer_mobile)
        .where(Repair.business_id == business_id)
        .order_by(Repair.id)
    )
    mobiles: list[str] = []
    seen: set[str] = set()
    for mobile in db.scalars(stmt):
        if not mobile or mobile in seen:
            continue
        seen.add(mobile)
        mobiles.append(mobile)
    return mobiles
