"""
Flask routes for the Will Drafter application.

All endpoints live on the JSON API blueprint and act on the user id stored
in the session. Failures come back as {'ok': False, ...} bodies and leave
the wizard usable:
- Validation errors: 422 with field errors
- Unknown or foreign wills: one generic message
- Store failures: 503, reads fall back to a blank draft
"""

import io
from datetime import datetime

from flask import Blueprint, request, jsonify, send_file, current_app

from will_drafter import entity_store
from will_drafter.chatbot import ask, ask_will_assistant
from will_drafter.context_builder import LIST_SECTIONS, SECTION_ASSET_ALLOCATION
from will_drafter.document_renderer import render
from will_drafter.draft_lifecycle import (
    finalize, update, get_draft, update_draft, delete_draft,
    load_will_for_editing, list_wills, get_will, will_as_draft
)
from will_drafter.entity_store import DraftUnavailable, UnknownSection
from will_drafter.pdf_generator import generate_will_pdf, suggested_filename
from will_drafter.reference_resolver import build_review_summary
from will_drafter.security import (
    csrf, user_required, get_json_payload,
    rate_limit_draft_write, rate_limit_finalize, rate_limit_pdf, rate_limit_chat
)
from will_drafter.step_navigator import Step, StepNavigator, progress
from will_drafter.validation import (
    ValidationResult, validate_asset, validate_beneficiary, validate_asset_allocation
)


api_bp = Blueprint('api', __name__, url_prefix='/api')

# Session-authenticated JSON API called by the app's own client
csrf.exempt(api_bp)

STORE_UNAVAILABLE = 'Your draft could not be saved right now. Please try again.'

ITEM_VALIDATORS = {
    'assets': validate_asset,
    'beneficiaries': validate_beneficiary,
}


def _store_error(error: DraftUnavailable):
    current_app.logger.error(f'Draft store unavailable: {str(error)}')
    return jsonify({'ok': False, 'error': STORE_UNAVAILABLE}), 503


def _validation_error(result: ValidationResult):
    return jsonify(result.to_dict()), 422


def _validate_item(user_id: str, section: str, payload: dict, item_id: str = None) -> ValidationResult:
    if section == SECTION_ASSET_ALLOCATION:
        share = {'beneficiaryId': payload.get('beneficiaryId'), 'percentage': payload.get('percentage')}
        if item_id:
            share['id'] = item_id
        return validate_asset_allocation(
            {'assetId': payload.get('assetId'), 'allocations': [share]},
            existing_allocations=entity_store.list_items(user_id, section)
        )
    return ITEM_VALIDATORS[section](payload)


# =============================================================================
# Working draft
# =============================================================================

@api_bp.route('/draft', methods=['GET'])
@user_required
def api_get_draft():
    """Return the working draft merged over the blank defaults."""
    return jsonify({'ok': True, 'draft': get_draft(request.user_id)})


@api_bp.route('/draft', methods=['PUT'])
@rate_limit_draft_write()
@user_required
def api_update_draft():
    """Save every section present in the request body."""
    payload = get_json_payload()
    try:
        saved = update_draft(request.user_id, payload)
    except DraftUnavailable as e:
        return _store_error(e)
    return jsonify({'ok': True, 'saved': saved})


@api_bp.route('/draft', methods=['DELETE'])
@user_required
def api_delete_draft():
    """Discard the working draft."""
    try:
        delete_draft(request.user_id)
    except DraftUnavailable as e:
        return _store_error(e)
    return jsonify({'ok': True})


@api_bp.route('/draft/sections/<section>', methods=['GET'])
@user_required
def api_get_section(section: str):
    """Return one section, or its default when the store is unavailable."""
    try:
        data = entity_store.get_section(request.user_id, section)
    except UnknownSection:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    except DraftUnavailable:
        return jsonify({
            'ok': True,
            'section': entity_store.section_default(section),
            'warning': 'Could not load your saved data.'
        })
    return jsonify({'ok': True, 'section': data})


@api_bp.route('/draft/sections/<section>', methods=['PUT'])
@rate_limit_draft_write()
@user_required
def api_put_section(section: str):
    """Save one section without validation (top-level merge)."""
    payload = get_json_payload()
    try:
        stored = entity_store.put_section(request.user_id, section, payload)
    except UnknownSection:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    except DraftUnavailable as e:
        return _store_error(e)
    return jsonify({'ok': True, 'section': stored})


@api_bp.route('/draft/<section>/items', methods=['GET'])
@user_required
def api_list_items(section: str):
    """List the items of a list section."""
    if section not in LIST_SECTIONS:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    try:
        items = entity_store.list_items(request.user_id, section)
    except DraftUnavailable:
        return jsonify({'ok': True, 'items': [], 'warning': 'Could not load your saved data.'})
    return jsonify({'ok': True, 'items': items})


@api_bp.route('/draft/<section>/items', methods=['POST'])
@rate_limit_draft_write()
@user_required
def api_add_item(section: str):
    """Validate and append an asset, beneficiary or allocation."""
    if section not in LIST_SECTIONS:
        return jsonify({'ok': False, 'error': 'Not found'}), 404

    payload = get_json_payload()
    try:
        result = _validate_item(request.user_id, section, payload)
        if not result.is_valid:
            return _validation_error(result)
        item_id = entity_store.add_item(request.user_id, section, payload)
    except DraftUnavailable as e:
        return _store_error(e)
    return jsonify({'ok': True, 'id': item_id}), 201


@api_bp.route('/draft/<section>/items/<item_id>', methods=['PUT'])
@rate_limit_draft_write()
@user_required
def api_update_item(section: str, item_id: str):
    """Validate and replace one list item."""
    if section not in LIST_SECTIONS:
        return jsonify({'ok': False, 'error': 'Not found'}), 404

    payload = get_json_payload()
    try:
        result = _validate_item(request.user_id, section, payload, item_id=item_id)
        if not result.is_valid:
            return _validation_error(result)
        found = entity_store.update_item(request.user_id, section, item_id, payload)
    except DraftUnavailable as e:
        return _store_error(e)
    if not found:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    return jsonify({'ok': True, 'id': item_id})


@api_bp.route('/draft/<section>/items/<item_id>', methods=['DELETE'])
@user_required
def api_remove_item(section: str, item_id: str):
    """Delete one list item."""
    if section not in LIST_SECTIONS:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    try:
        found = entity_store.remove_item(request.user_id, section, item_id)
    except DraftUnavailable as e:
        return _store_error(e)
    if not found:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    return jsonify({'ok': True})


# =============================================================================
# Wizard navigation
# =============================================================================

def _navigate(step: str, action: str, target: str = None):
    try:
        navigator = StepNavigator(request.user_id, current=step)
    except ValueError:
        return jsonify({'ok': False, 'error': 'Not found'}), 404

    payload = get_json_payload()
    if action == 'next':
        result = navigator.next(payload)
    elif action == 'previous':
        result = navigator.previous(payload)
    elif action == 'go':
        try:
            result = navigator.go_to(target, payload)
        except ValueError:
            return jsonify({'ok': False, 'error': 'Not found'}), 404
    else:
        result = navigator.save_and_exit(payload)

    body = result.to_dict()
    if result.target == 'dashboard':
        body['redirect'] = current_app.config.get('DASHBOARD_URL', '/dashboard')
    status = 422 if not result.errors.is_valid else 200
    return jsonify(body), status


@api_bp.route('/wizard/<step>/next', methods=['POST'])
@rate_limit_draft_write()
@user_required
def api_wizard_next(step: str):
    """Validate the step, save it and advance."""
    return _navigate(step, 'next')


@api_bp.route('/wizard/<step>/previous', methods=['POST'])
@rate_limit_draft_write()
@user_required
def api_wizard_previous(step: str):
    """Save the step best-effort and go back."""
    return _navigate(step, 'previous')


@api_bp.route('/wizard/<step>/go/<target>', methods=['POST'])
@rate_limit_draft_write()
@user_required
def api_wizard_go(step: str, target: str):
    """Save the step best-effort and jump to another step."""
    return _navigate(step, 'go', target)


@api_bp.route('/wizard/<step>/save-exit', methods=['POST'])
@rate_limit_draft_write()
@user_required
def api_wizard_save_exit(step: str):
    """Save the step best-effort and leave for the dashboard."""
    return _navigate(step, 'save_exit')


@api_bp.route('/wizard/progress', methods=['GET'])
@user_required
def api_wizard_progress():
    """Progress indicator for the current step."""
    current = request.args.get('current', Step.PERSONAL_INFO.value)
    try:
        steps = progress(get_draft(request.user_id), current)
    except ValueError:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    return jsonify({'ok': True, 'steps': steps})


# =============================================================================
# Review and document preview
# =============================================================================

@api_bp.route('/draft/review', methods=['GET'])
@user_required
def api_review():
    """Per-asset allocation summary with resolved names."""
    return jsonify({'ok': True, 'review': build_review_summary(get_draft(request.user_id))})


@api_bp.route('/draft/document', methods=['GET'])
@user_required
def api_document():
    """Preview of the will as structured data and plain text."""
    document = render(get_draft(request.user_id))
    return jsonify({'ok': True, 'document': document.to_dict(), 'text': document.to_text()})


def _send_pdf(document, version=None):
    pdf_bytes, pdf_hash = generate_will_pdf(document, generation_timestamp=datetime.utcnow())
    response = send_file(
        io.BytesIO(pdf_bytes),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=suggested_filename(version)
    )
    response.headers['X-Document-SHA256'] = pdf_hash
    return response


@api_bp.route('/draft/pdf', methods=['GET'])
@rate_limit_pdf()
@user_required
def api_draft_pdf():
    """Export the working draft as a single-page PDF."""
    draft = get_draft(request.user_id)
    return _send_pdf(render(draft), draft.get('version'))


# =============================================================================
# Finalized wills
# =============================================================================

@api_bp.route('/wills', methods=['POST'])
@rate_limit_finalize()
@user_required
def api_finalize():
    """
    Finalize the working draft as a new will version.

    The working draft is cleared afterwards; a failure to clear is logged
    but does not undo the finalized will.
    """
    result = finalize(request.user_id, get_draft(request.user_id))
    if not result.success:
        return jsonify(result.to_dict()), 500

    try:
        delete_draft(request.user_id)
    except DraftUnavailable as e:
        current_app.logger.error(f'Could not clear draft after finalize: {str(e)}')

    return jsonify(result.to_dict()), 201


@api_bp.route('/wills', methods=['GET'])
@user_required
def api_list_wills():
    """The user's finalized wills, newest first."""
    return jsonify({'ok': True, 'wills': list_wills(request.user_id)})


@api_bp.route('/wills/<will_id>', methods=['PUT'])
@rate_limit_finalize()
@user_required
def api_update_will(will_id: str):
    """Replace an existing will's data with the working draft."""
    result = update(request.user_id, will_id, get_draft(request.user_id))
    if not result.success:
        return jsonify(result.to_dict()), 404
    return jsonify(result.to_dict())


@api_bp.route('/wills/<will_id>/edit', methods=['POST'])
@user_required
def api_edit_will(will_id: str):
    """Load a finalized will into the working draft."""
    result = load_will_for_editing(request.user_id, will_id)
    if not result.success:
        return jsonify(result.to_dict()), 404
    return jsonify(result.to_dict())


@api_bp.route('/wills/<will_id>/pdf', methods=['GET'])
@rate_limit_pdf()
@user_required
def api_will_pdf(will_id: str):
    """Export a finalized will as a single-page PDF."""
    will = get_will(request.user_id, will_id)
    if will is None:
        return jsonify({'ok': False, 'error': 'Not found'}), 404
    document = render(will_as_draft(will), today=will.created_at.date())
    return _send_pdf(document, will.version)


# =============================================================================
# Chatbot
# =============================================================================

def _chat_query():
    data = request.get_json(silent=True)
    return data.get('query') if isinstance(data, dict) else None


@api_bp.route('/chat', methods=['POST'])
@rate_limit_chat()
def api_chat():
    """Answer a basic legal question."""
    return jsonify(ask(_chat_query(), backend=current_app.config.get('CHAT_BACKEND')))


@api_bp.route('/chat/will-assistant', methods=['POST'])
@rate_limit_chat()
def api_will_assistant():
    """Answer a question about making a Will in India."""
    return jsonify(ask_will_assistant(_chat_query(), backend=current_app.config.get('CHAT_BACKEND')))
