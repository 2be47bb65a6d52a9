"""
Work routes package.

This package contains the project tracker endpoints:
- crud.py: Work CRUD plus the budget report and reconciliation
- resources.py: People and vendors attached to a work
- expenses.py: Expenses, which move the work's remaining budget
- documents.py: Links to documents about a work
"""

from flask import Blueprint

# Create the main work blueprint
work_bp = Blueprint('work', __name__)

# Import all route modules to register them
from . import crud
from . import resources
from . import expenses
from . import documents

# Export the blueprint
__all__ = ['work_bp']
