import uuid
from datetime import datetime
from sqlalchemy import JSON
from agency_ops.models import db


TEAM_MEMBER_STATUSES = ('active', 'inactive')


class TeamMember(db.Model):
    __tablename__ = 'team_members'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(100), nullable=True)
    skills = db.Column(JSON, nullable=True)  # list of strings
    hourly_rate = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=True, default=0)
    status = db.Column(db.String(20), nullable=True, default='active')  # active, inactive
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_by = db.Column(db.String(255), nullable=True)

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'skills': self.skills or [],
            'hourly_rate': self.hourly_rate,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'created_by': self.created_by
        }

    def __repr__(self):
        return f'<TeamMember {self.name}>'
