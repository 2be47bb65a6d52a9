import uuid
import logging
from datetime import datetime
from agency_ops.models import db
from agency_ops.services.task_status import (
    TaskStatus,
    is_overdue,
    duration_minutes,
    format_duration
)

logger = logging.getLogger(__name__)


class Task(db.Model):
    __tablename__ = 'tasks'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=True)
    assigned_to = db.Column(db.String(36), db.ForeignKey('team_members.id'), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=TaskStatus.PENDING.value)
    # timer_start: work began; timer_end: deadline while pending, actual end once finished
    timer_start = db.Column(db.DateTime, nullable=True)
    timer_end = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_by = db.Column(db.String(255), nullable=True)

    # Relationships
    client = db.relationship('Client', backref=db.backref('tasks', lazy=True))
    assignee = db.relationship('TeamMember', backref=db.backref('tasks', lazy=True))

    @property
    def is_overdue(self):
        return is_overdue(self.status, self.timer_end)

    def to_dict(self):
        minutes = duration_minutes(self.status, self.timer_start, self.timer_end)
        client_name = self.client.name if self.client else None
        client_missing = bool(self.client_id) and self.client is None
        if client_missing:
            logger.warning(f"Task {self.id} references missing client {self.client_id}")

        return {
            'id': str(self.id),
            'title': self.title,
            'description': self.description,
            'client_id': self.client_id,
            'client_name': client_name,
            'client_missing': client_missing,
            'assigned_to': self.assigned_to,
            'status': self.status,
            'timer_start': self.timer_start.isoformat() if self.timer_start else None,
            'timer_end': self.timer_end.isoformat() if self.timer_end else None,
            'is_overdue': self.is_overdue,
            'duration_minutes': minutes,
            'duration_display': format_duration(minutes),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'created_by': self.created_by
        }

    def __repr__(self):
        return f'<Task {self.title} ({self.status})>'
