from typing import Any, Dict, Iterable


def _amount(record) -> float:
    value = record.get('amount') if isinstance(record, dict) else getattr(record, 'amount', None)
    return float(value or 0)


def _field(record, name):
    return record.get(name) if isinstance(record, dict) else getattr(record, name, None)


def summarize_finances(records: Iterable[Any]) -> Dict[str, float]:
    """
    Sum finance records into the four summary tiles.

    Accepts model instances or serialized dicts. An empty input gives zeros.
    """
    summary = {
        'total_invoiced': 0.0,
        'total_payments': 0.0,
        'total_expenses': 0.0,
        'pending_invoices': 0.0,
    }
    for record in records:
        amount = _amount(record)
        record_type = _field(record, 'type')
        if record_type == 'invoice':
            summary['total_invoiced'] += amount
            if _field(record, 'status') == 'pending':
                summary['pending_invoices'] += amount
        elif record_type == 'payment':
            summary['total_payments'] += amount
        elif record_type == 'expense':
            summary['total_expenses'] += amount

    return {key: round(value, 2) for key, value in summary.items()}
