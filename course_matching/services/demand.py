from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from course_matching.models.application import Application
from course_matching.models.user import User
from course_matching.schemas.proposal import DemandResult, PendingApplication
from course_matching.utils.transaction import reading


def aggregate_demand(
    applications: Iterable[PendingApplication],
    window_ids: Optional[Iterable[int]] = None,
) -> DemandResult:
    """
    window_id -> number of distinct pending applications that selected it.
    With window_ids given, selections of other (deleted) windows are ignored.
    """
    known = set(window_ids) if window_ids is not None else None
    counts: Dict[int, int] = {}
    for app in applications:
        # dedupe: the same window submitted twice counts once
        for wid in dict.fromkeys(app.window_ids):
            if known is not None and wid not in known:
                continue
            counts[wid] = counts.get(wid, 0) + 1

    return DemandResult(counts=counts, max_demand=max(counts.values(), default=0))


def load_pending_applications(db: Session, course_id: int) -> List[PendingApplication]:
    with reading("load pending applications"):
        rows = (
            db.query(Application, User.birthdate)
            .join(User, User.id == Application.student_id)
            .options(selectinload(Application.time_choices))
            .filter(Application.course_id == course_id, Application.status == "pending")
            .order_by(Application.created_at.asc(), Application.id.asc())
            .all()
        )

    return [
        PendingApplication(
            id=app.id,
            student_id=app.student_id,
            created_at=app.created_at,
            window_ids=[c.window_id for c in app.time_choices],
            birthdate=birthdate,
        )
        for app, birthdate in rows
    ]
