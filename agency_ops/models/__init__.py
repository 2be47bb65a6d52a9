# Import db from extensions to use the same instance
from agency_ops.extensions import db

# Import all models to ensure they are registered with SQLAlchemy
from agency_ops.models.client import Client, Idea
from agency_ops.models.team_member import TeamMember
from agency_ops.models.task import Task
from agency_ops.models.finance import Finance
from agency_ops.models.work import Work, WorkResource, WorkExpense, WorkDocument
from agency_ops.models.dashboard_snapshot import DashboardSnapshot

__all__ = [
    'db', 'Client', 'Idea', 'TeamMember', 'Task', 'Finance',
    'Work', 'WorkResource', 'WorkExpense', 'WorkDocument', 'DashboardSnapshot'
]
