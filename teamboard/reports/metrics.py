from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from teamboard.models.enums import TaskPriority, TaskStatus
from teamboard.models.project import Project
from teamboard.models.task import Task

ON_TRACK = "On Track"
AT_RISK = "At Risk"
OVERDUE = "Overdue"

AT_RISK_WINDOW = timedelta(days=3)

def calculate_progress(tasks: Sequence[Task]) -> int:
    if not tasks:
        return 0
    done = sum(1 for t in tasks if t.status == TaskStatus.done)
    return round(done * 100 / len(tasks))

def project_health(project: Project, tasks: Sequence[Task], today: date | None = None) -> str:
    if project.deadline is None:
        return ON_TRACK

    today = today or date.today()
    progress = calculate_progress(tasks)

    if progress < 100 and project.deadline < today:
        return OVERDUE
    if progress < 50 and project.deadline - today < AT_RISK_WINDOW:
        return AT_RISK
    return ON_TRACK

def summarize_tasks(tasks: Iterable[Task]) -> dict[str, int]:
    counts = {"total": 0, "done": 0, "open": 0, "high_priority": 0, "open_high_priority": 0}
    for t in tasks:
        counts["total"] += 1
        if t.status == TaskStatus.done:
            counts["done"] += 1
        else:
            counts["open"] += 1
        if t.priority == TaskPriority.high:
            counts["high_priority"] += 1
            if t.status != TaskStatus.done:
                counts["open_high_priority"] += 1
    return counts
