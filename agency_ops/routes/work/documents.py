from flask import request, jsonify
from agency_ops.models import db, Work, WorkDocument
from agency_ops.models.work import DOCUMENT_TYPES
from agency_ops.routes.work import work_bp
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_not_found_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import parse_choice
import logging

logger = logging.getLogger(__name__)


def _get_document(work_id, document_id):
    document = db.session.get(WorkDocument, document_id)
    if not document or document.work_id != work_id:
        return None
    return document


@work_bp.route('/works/<work_id>/documents', methods=['GET'])
@cache_response('works', key_args=['work_id'])
def list_work_documents(work_id):
    try:
        work = db.session.get(Work, work_id)
        if not work:
            return handle_not_found_error("Work", work_id)

        return jsonify({
            'work_id': work_id,
            'documents': [document.to_dict() for document in work.documents]
        }), 200
    except Exception as e:
        return handle_exception(e, "document listing")


@work_bp.route('/works/<work_id>/documents', methods=['POST'])
@invalidate_cache_on_change('works')
def create_work_document(work_id):
    """Attach a document link to a work."""
    try:
        if not db.session.get(Work, work_id):
            return handle_not_found_error("Work", work_id)

        data = request.get_json(silent=True)
        validation_error = validate_required_fields(data, ['title', 'url'])
        if validation_error:
            return validation_error

        document = WorkDocument(
            work_id=work_id,
            title=str(data['title']).strip(),
            url=str(data['url']).strip(),
            description=data.get('description') or None,
            document_type=parse_choice(data.get('document_type'), DOCUMENT_TYPES, 'document_type', 'link')
        )
        db.session.add(document)
        db.session.commit()

        return jsonify({
            'message': 'Document created successfully',
            'document': document.to_dict()
        }), 201

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "document creation")


@work_bp.route('/works/<work_id>/documents/<document_id>', methods=['PUT'])
@invalidate_cache_on_change('works')
def update_work_document(work_id, document_id):
    try:
        document = _get_document(work_id, document_id)
        if not document:
            return handle_not_found_error("Document", document_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        for field in ('title', 'url'):
            if field in data:
                if not data[field] or not str(data[field]).strip():
                    return handle_validation_error(f"{field} can not be empty")
                setattr(document, field, str(data[field]).strip())
        if 'description' in data:
            document.description = data['description'] or None
        if 'document_type' in data:
            document.document_type = parse_choice(
                data['document_type'], DOCUMENT_TYPES, 'document_type', document.document_type
            )

        db.session.commit()

        return jsonify({
            'message': 'Document updated successfully',
            'document': document.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "document update")


@work_bp.route('/works/<work_id>/documents/<document_id>', methods=['DELETE'])
@invalidate_cache_on_change('works')
def delete_work_document(work_id, document_id):
    try:
        document = _get_document(work_id, document_id)
        if not document:
            return handle_not_found_error("Document", document_id)

        db.session.delete(document)
        db.session.commit()

        return jsonify({
            'message': 'Document deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "document deletion")
