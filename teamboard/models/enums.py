from enum import Enum

class Role(str, Enum):
    admin = "admin"
    manager = "manager"
    member = "member"

class ProjectStatus(str, Enum):
    planning = "Planning"
    active = "Active"
    on_hold = "On Hold"
    completed = "Completed"

class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    review = "review"
    done = "done"

class TaskPriority(str, Enum):
    low = "Low"
    medium = "Medium"
    high = "High"
