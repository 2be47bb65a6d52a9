import uuid
from datetime import datetime
from sqlalchemy import JSON
from agency_ops.models import db


CLIENT_STATUSES = ('active', 'inactive', 'archived')

# Plain text columns that may be written through update/patch
CLIENT_TEXT_FIELDS = (
    'name', 'email', 'status', 'onboarding_document', 'current_position',
    'client_goal', 'notes', 'channel_details', 'project_ideas',
    'account_details', 'video_description', 'inspiration_list',
    'scripts_document', 'created_by'
)

# Semi-structured columns stored as JSON blobs
CLIENT_JSON_FIELDS = (
    'onboarding_checklist', 'budget', 'timeline', 'tracking_results',
    'hired_people', 'video_folder'
)


class Client(db.Model):
    __tablename__ = 'clients'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=True, default='active')  # active, inactive, archived
    onboarding_document = db.Column(db.Text, nullable=True)
    current_position = db.Column(db.Text, nullable=True)
    client_goal = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    channel_details = db.Column(db.Text, nullable=True)
    project_ideas = db.Column(db.Text, nullable=True)
    account_details = db.Column(db.Text, nullable=True)
    video_description = db.Column(db.Text, nullable=True)
    inspiration_list = db.Column(db.Text, nullable=True)
    scripts_document = db.Column(db.Text, nullable=True)

    # No shape is enforced on these; see services.client_fields
    onboarding_checklist = db.Column(JSON, nullable=True)
    budget = db.Column(JSON, nullable=True)
    timeline = db.Column(JSON, nullable=True)
    tracking_results = db.Column(JSON, nullable=True)
    hired_people = db.Column(JSON, nullable=True)
    video_folder = db.Column(JSON, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_by = db.Column(db.String(255), nullable=True)

    # Relationships
    ideas = db.relationship('Idea', backref='client', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        data = {
            'id': str(self.id),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        for field in CLIENT_TEXT_FIELDS:
            data[field] = getattr(self, field)
        for field in CLIENT_JSON_FIELDS:
            data[field] = getattr(self, field)
        return data

    def __repr__(self):
        return f'<Client {self.name}>'


class Idea(db.Model):
    __tablename__ = 'ideas'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    idea = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_by = db.Column(db.String(255), nullable=True)

    def to_dict(self):
        return {
            'id': str(self.id),
            'client_id': str(self.client_id),
            'idea': self.idea,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'created_by': self.created_by
        }

    def __repr__(self):
        return f'<Idea {self.id}>'
