import uuid
from datetime import datetime
from agency_ops.models import db


class DashboardSnapshot(db.Model):
    """Point-in-time copy of the dashboard tiles, used as the comparison baseline."""
    __tablename__ = 'dashboard_snapshots'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    captured_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    client_count = db.Column(db.Integer, nullable=False, default=0)
    task_count = db.Column(db.Integer, nullable=False, default=0)
    pending_task_count = db.Column(db.Integer, nullable=False, default=0)
    revenue = db.Column(db.Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    active_project_count = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': str(self.id),
            'captured_at': self.captured_at.isoformat() if self.captured_at else None,
            'client_count': self.client_count,
            'task_count': self.task_count,
            'pending_task_count': self.pending_task_count,
            'revenue': self.revenue,
            'active_project_count': self.active_project_count
        }

    def __repr__(self):
        return f'<DashboardSnapshot {self.captured_at}>'
