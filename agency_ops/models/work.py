import uuid
from datetime import datetime, date
from agency_ops.models import db


WORK_STATUSES = ('planned', 'in_progress', 'completed', 'canceled')
EXPENSE_TYPES = ('service', 'material', 'travel', 'other')
PAYMENT_STATUSES = ('paid', 'pending', 'invoiced')
DOCUMENT_TYPES = ('link', 'google_doc', 'spreadsheet', 'presentation', 'other')


def _iso(value):
    return value.isoformat() if value else None


class Work(db.Model):
    __tablename__ = 'works'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='planned')  # planned, in_progress, completed, canceled
    start_date = db.Column(db.Date, nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    completion_date = db.Column(db.Date, nullable=True)
    total_budget = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)
    # Denormalized: total_budget minus the sum of expenses, maintained by services.work_budget
    remaining_budget = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    client = db.relationship('Client', backref=db.backref('works', lazy=True))
    resources = db.relationship('WorkResource', backref='work', lazy=True, cascade='all, delete-orphan')
    expenses = db.relationship('WorkExpense', backref='work', lazy=True, cascade='all, delete-orphan',
                               order_by='WorkExpense.date.desc()')
    documents = db.relationship('WorkDocument', backref='work', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'description': self.description,
            'client_id': self.client_id,
            'client_name': self.client.name if self.client else None,
            'status': self.status,
            'start_date': _iso(self.start_date),
            'deadline': _iso(self.deadline),
            'completion_date': _iso(self.completion_date),
            'total_budget': self.total_budget,
            'remaining_budget': self.remaining_budget,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Work {self.title}>'


class WorkResource(db.Model):
    __tablename__ = 'work_resources'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    work_id = db.Column(db.String(36), db.ForeignKey('works.id'), nullable=False)
    team_member_id = db.Column(db.String(36), db.ForeignKey('team_members.id'), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(100), nullable=True)
    contact_info = db.Column(db.String(255), nullable=True)
    rate = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': str(self.id),
            'work_id': self.work_id,
            'team_member_id': self.team_member_id,
            'name': self.name,
            'role': self.role,
            'contact_info': self.contact_info,
            'rate': self.rate,
            'notes': self.notes
        }

    def __repr__(self):
        return f'<WorkResource {self.name}>'


class WorkExpense(db.Model):
    __tablename__ = 'work_expenses'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    work_id = db.Column(db.String(36), db.ForeignKey('works.id'), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=False, default=date.today)
    resource_id = db.Column(db.String(36), db.ForeignKey('work_resources.id'), nullable=True)
    expense_type = db.Column(db.String(20), nullable=False, default='service')  # service, material, travel, other
    payment_status = db.Column(db.String(20), nullable=False, default='paid')  # paid, pending, invoiced

    resource = db.relationship('WorkResource')

    def to_dict(self):
        return {
            'id': str(self.id),
            'work_id': self.work_id,
            'category': self.category,
            'amount': self.amount,
            'description': self.description,
            'date': _iso(self.date),
            'resource_id': self.resource_id,
            'resource_name': self.resource.name if self.resource else None,
            'expense_type': self.expense_type,
            'payment_status': self.payment_status
        }

    def __repr__(self):
        return f'<WorkExpense {self.category} {self.amount}>'


class WorkDocument(db.Model):
    __tablename__ = 'work_documents'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    work_id = db.Column(db.String(36), db.ForeignKey('works.id'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(2048), nullable=False)
    description = db.Column(db.Text, nullable=True)
    document_type = db.Column(db.String(30), nullable=False, default='link')

    def to_dict(self):
        return {
            'id': str(self.id),
            'work_id': self.work_id,
            'title': self.title,
            'url': self.url,
            'description': self.description,
            'document_type': self.document_type
        }

    def __repr__(self):
        return f'<WorkDocument {self.title}>'
