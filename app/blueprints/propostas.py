"""Propostas blueprint - quotes, wizard draft and PDF download (JSON)."""
import logging
from flask import Blueprint, jsonify, request, session, send_file, current_app, g
from app.database import get_session
from app.exceptions import BusinessLogicError
from app.middleware import require_login, require_active_subscription, DRAFT_KEY
from app.models import PropostaStatus, normalize_status
from app.services import ambiente_service
from app.services.pdf_service import render_proposta_pdf, build_pdf_filename
from app.services.pricing_service import (
    FINANCEIRO_FIELDS, DETALHES_TECNICOS_FIELDS, CLIENTE_FIELDS, PGTO_FIELDS, pricing_summary,
)
from app.services.profile_service import get_profile, profile_info
from app.services.proposta_service import (
    new_draft, to_state, list_propostas, find_duplicate_numeros, get_proposta,
    save_proposta, update_status, delete_proposta,
)
from app.utils.http import request_payload
from app.utils.number_format import format_pix_key
from app.blueprints.metrics import propostas_saved_total

logger = logging.getLogger(__name__)

propostas_bp = Blueprint('propostas', __name__, url_prefix='/propostas')

# Flat fields the wizard may patch directly
DRAFT_FIELDS = (
    ('cliente_nome', 'cliente_wpp', 'validade')
    + tuple(CLIENTE_FIELDS.values())
    + DETALHES_TECNICOS_FIELDS
    + FINANCEIRO_FIELDS
    + tuple(PGTO_FIELDS.values())
)


def _with_summary(state: dict) -> dict:
    return {'proposta': state, 'resumo': pricing_summary(state)}


# =====================================================
# WIZARD DRAFT
# =====================================================

def _draft_defaults() -> dict:
    """New draft seeded with the profile's validity and lead time."""
    draft = new_draft()
    profile = get_profile(get_session(), g.session_ctx.user_id)

    dias = (profile.validade if profile else None) or current_app.config.get('DEFAULT_VALIDADE_DIAS', 15)
    draft['validade'] = f'{dias} dias'
    if profile and profile.prazo_min and profile.prazo_max:
        draft['prazo_obs'] = f'Entre {profile.prazo_min} e {profile.prazo_max} dias úteis'
    return draft


def get_draft() -> dict:
    """Get wizard draft from session."""
    if DRAFT_KEY not in session:
        session[DRAFT_KEY] = _draft_defaults()
    return session[DRAFT_KEY]


def set_draft(draft: dict):
    session[DRAFT_KEY] = draft
    session.modified = True


def _draft_response(draft: dict):
    return jsonify({'rascunho': draft, 'resumo': pricing_summary(draft)}), 200


@propostas_bp.route('/rascunho', methods=['GET'])
@require_login
@require_active_subscription
def show_draft():
    """Current draft with live subtotal, profit and total."""
    return _draft_response(get_draft())


@propostas_bp.route('/rascunho', methods=['DELETE'])
@require_login
@require_active_subscription
def reset_draft():
    """Discard the draft and start a new one."""
    draft = _draft_defaults()
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho', methods=['PATCH'])
@require_login
@require_active_subscription
def patch_draft():
    """Set flat fields on the draft."""
    data = request_payload()
    unknown = [key for key in data if key not in DRAFT_FIELDS]
    if unknown:
        raise BusinessLogicError(f'Campos inválidos: {", ".join(sorted(unknown))}')

    draft = dict(get_draft())
    draft.update(data)
    if 'pgto_pix' in data or 'pgto_pix_tipo' in data:
        draft['pgto_pix'] = format_pix_key(draft.get('pgto_pix'), draft.get('pgto_pix_tipo') or 'CPF')
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/carregar/<int:proposta_id>', methods=['POST'])
@require_login
@require_active_subscription
def load_draft(proposta_id):
    """Load a saved proposta into the draft for editing."""
    proposta = get_proposta(get_session(), g.session_ctx.user_id, proposta_id)
    draft = to_state(proposta)
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/ambientes', methods=['POST'])
@require_login
@require_active_subscription
def add_ambiente():
    tipo = (request_payload().get('tipo') or '').strip()
    if not tipo:
        raise BusinessLogicError('Informe o tipo de ambiente.')

    draft = dict(get_draft())
    draft['ambientes'] = ambiente_service.add_ambiente(draft.get('ambientes'), tipo)
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/ambientes/<ambiente_id>', methods=['PATCH'])
@require_login
@require_active_subscription
def update_ambiente(ambiente_id):
    data = request_payload()
    draft = dict(get_draft())
    draft['ambientes'] = ambiente_service.update_ambiente(
        draft.get('ambientes'), ambiente_id, data.get('field'), data.get('value')
    )
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/ambientes/<ambiente_id>', methods=['DELETE'])
@require_login
@require_active_subscription
def remove_ambiente(ambiente_id):
    draft = dict(get_draft())
    draft['ambientes'] = ambiente_service.remove_ambiente(draft.get('ambientes'), ambiente_id)
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/ambientes/<ambiente_id>/pecas', methods=['POST'])
@require_login
@require_active_subscription
def add_peca(ambiente_id):
    draft = dict(get_draft())
    draft['ambientes'] = ambiente_service.add_peca(draft.get('ambientes'), ambiente_id)
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/ambientes/<ambiente_id>/pecas/<int:index>', methods=['PATCH'])
@require_login
@require_active_subscription
def update_peca(ambiente_id, index):
    data = request_payload()
    draft = dict(get_draft())
    draft['ambientes'] = ambiente_service.update_peca(
        draft.get('ambientes'), ambiente_id, index, data.get('field'), data.get('value')
    )
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/ambientes/<ambiente_id>/pecas/<int:index>', methods=['DELETE'])
@require_login
@require_active_subscription
def remove_peca(ambiente_id, index):
    draft = dict(get_draft())
    draft['ambientes'] = ambiente_service.remove_peca(draft.get('ambientes'), ambiente_id, index)
    set_draft(draft)
    return _draft_response(draft)


@propostas_bp.route('/rascunho/salvar', methods=['POST'])
@require_login
@require_active_subscription
def save_draft():
    """
    Save and send the draft.

    The draft is cleared only after the write succeeded; on error it stays
    in the session untouched.
    """
    draft = get_draft()
    proposta = save_proposta(get_session(), g.session_ctx.user_id, draft, proposta_id=draft.get('id'))
    propostas_saved_total.inc()

    session.pop(DRAFT_KEY, None)
    return jsonify(_with_summary(to_state(proposta))), 201


# =====================================================
# SAVED PROPOSTAS
# =====================================================

@propostas_bp.route('', methods=['GET'])
@require_login
@require_active_subscription
def list_all():
    """List propostas (filters: q, status)."""
    propostas = list_propostas(
        get_session(),
        g.session_ctx.user_id,
        search=request.args.get('q', '').strip() or None,
        status=request.args.get('status', '').strip() or None
    )
    return jsonify({
        'propostas': propostas,
        'numeros_duplicados': {str(k): v for k, v in find_duplicate_numeros(propostas).items()},
    }), 200


@propostas_bp.route('', methods=['POST'])
@require_login
@require_active_subscription
def create():
    """Save a proposta from a full flat state in the body."""
    proposta = save_proposta(get_session(), g.session_ctx.user_id, request_payload())
    propostas_saved_total.inc()
    return jsonify(_with_summary(to_state(proposta))), 201


@propostas_bp.route('/<int:proposta_id>', methods=['GET'])
@require_login
@require_active_subscription
def show(proposta_id):
    proposta = get_proposta(get_session(), g.session_ctx.user_id, proposta_id)
    return jsonify(_with_summary(to_state(proposta))), 200


@propostas_bp.route('/<int:proposta_id>', methods=['PUT'])
@require_login
@require_active_subscription
def update(proposta_id):
    proposta = save_proposta(get_session(), g.session_ctx.user_id, request_payload(), proposta_id=proposta_id)
    propostas_saved_total.inc()
    return jsonify(_with_summary(to_state(proposta))), 200


@propostas_bp.route('/<int:proposta_id>/status', methods=['PATCH', 'POST'])
@require_login
@require_active_subscription
def change_status(proposta_id):
    status = (request_payload().get('status') or '').strip()
    proposta = update_status(get_session(), g.session_ctx.user_id, proposta_id, status)
    return jsonify({'id': proposta.id, 'status': normalize_status(proposta.status)}), 200


@propostas_bp.route('/<int:proposta_id>', methods=['DELETE'])
@require_login
@require_active_subscription
def delete(proposta_id):
    delete_proposta(get_session(), g.session_ctx.user_id, proposta_id)
    return jsonify({'status': 'ok'}), 200


@propostas_bp.route('/<int:proposta_id>/pdf')
@require_login
@require_active_subscription
def download_pdf(proposta_id):
    """Generate and download the proposta PDF; marks it as sent."""
    db_session = get_session()
    user_id = g.session_ctx.user_id

    proposta = get_proposta(db_session, user_id, proposta_id)
    state = to_state(proposta)

    pdf_buffer = render_proposta_pdf(state, profile_info(db_session, user_id))
    filename = build_pdf_filename(state.get('cliente_nome'), state.get('created_at'))

    if state['status'] == PropostaStatus.NOT_SENT.value:
        update_status(db_session, user_id, proposta_id, PropostaStatus.SENT.value)
        logger.info(f"[PROPOSTA] Proposta {proposta_id} marked as sent after PDF download")

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=filename
    )
