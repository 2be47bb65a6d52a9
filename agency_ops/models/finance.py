import uuid
from datetime import datetime
from agency_ops.models import db


FINANCE_TYPES = ('invoice', 'payment', 'expense')
FINANCE_STATUSES = ('pending', 'paid', 'overdue', 'completed')


class Finance(db.Model):
    __tablename__ = 'finances'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=True)
    amount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # invoice, payment, expense
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, paid, overdue, completed
    due_date = db.Column(db.Date, nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_by = db.Column(db.String(255), nullable=True)

    # Relationships
    client = db.relationship('Client', backref=db.backref('finances', lazy=True))

    def to_dict(self):
        return {
            'id': str(self.id),
            'client_id': self.client_id,
            'client_name': self.client.name if self.client else None,
            'amount': float(self.amount) if self.amount is not None else 0.0,
            'type': self.type,
            'status': self.status,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'created_by': self.created_by
        }

    def __repr__(self):
        return f'<Finance {self.type} {self.amount}>'
