"""Proposta service: persistence and listing of quotes, scoped by account."""

import copy
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import BusinessLogicError, NotFoundError, PersistenceError
from app.models import Proposta, PropostaStatus, normalize_status
from app.models.proposta import STATUS_SYNONYMS
from app.services.ambiente_service import new_ambiente
from app.services.pricing_service import (
    DEFAULT_PGTO_FORMAS, DEFAULT_PGTO_PARCELAS,
    serialize_for_storage, deserialize_from_storage,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    'cliente_nome': 'Nome do cliente é obrigatório.',
    'cliente_wpp': 'WhatsApp do cliente é obrigatório.',
}


def new_draft() -> Dict[str, Any]:
    """Initial wizard state for a new proposta."""
    return {
        'ambientes': [new_ambiente('Cozinha Planejada')],
        'chapa': 'MDF 15mm',
        'acabamento': 'Lacca Fosco',
        'ferragens': 'Padrão',
        'v_margem': 30,
        'status': PropostaStatus.NOT_SENT.value,
        'pgto_formas': list(DEFAULT_PGTO_FORMAS),
        'pgto_parcelas': DEFAULT_PGTO_PARCELAS,
        'pgto_juros': False,
    }


def to_state(proposta: Proposta) -> Dict[str, Any]:
    """Flat proposta state for a stored row."""
    return deserialize_from_storage(proposta.to_record())


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def filter_by_status(propostas: List[Dict[str, Any]], status: Optional[str]) -> List[Dict[str, Any]]:
    """
    Keep the propostas whose normalized status matches `status`.

    `None`, '' and 'all' return everything. Legacy labels are accepted on
    both sides ('closed' matches 'sent').
    """
    if not status or status == 'all':
        return list(propostas)
    if str(status).strip().lower() not in STATUS_SYNONYMS:
        raise BusinessLogicError(f'Status inválido: {status}')
    wanted = normalize_status(status)
    return [p for p in propostas if normalize_status(p.get('status')) == wanted]


def find_duplicate_numeros(propostas: List[Dict[str, Any]]) -> Dict[int, List[Any]]:
    """
    Display numbers shared by more than one proposta.

    Returns:
        dict numero -> list of proposta ids
    """
    by_numero = defaultdict(list)
    for p in propostas:
        if p.get('numero') is not None:
            by_numero[p['numero']].append(p.get('id'))
    return {numero: ids for numero, ids in by_numero.items() if len(ids) > 1}


def list_propostas(session: Session, user_id: int, search: Optional[str] = None,
                   status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Account propostas, newest first, as flat states."""
    query = session.query(Proposta).filter(Proposta.user_id == user_id)

    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Proposta.cliente_nome.ilike(term),
            Proposta.tipo_movel.ilike(term),
        ))

    rows = query.order_by(Proposta.created_at.desc(), Proposta.id.desc()).all()
    return filter_by_status([to_state(p) for p in rows], status)


def get_proposta(session: Session, user_id: int, proposta_id: int) -> Proposta:
    proposta = session.query(Proposta).filter(
        Proposta.id == proposta_id,
        Proposta.user_id == user_id
    ).first()
    if not proposta:
        raise NotFoundError(f'Proposta {proposta_id} não encontrada.')
    return proposta


def save_proposta(session: Session, user_id: int, form: Dict[str, Any],
                  proposta_id: Optional[int] = None) -> Proposta:
    """
    Insert or update a proposta from the flat wizard state.

    The form dict is never modified, so the caller keeps its draft
    intact when the write fails.

    Raises:
        BusinessLogicError: Missing client name or WhatsApp
        NotFoundError: proposta_id does not belong to the account
        PersistenceError: The database rejected the write
    """
    for field, message in REQUIRED_FIELDS.items():
        value = form.get(field)
        if value is None or not str(value).strip():
            raise BusinessLogicError(message)

    form = copy.deepcopy(form)

    try:
        if proposta_id is not None:
            proposta = get_proposta(session, user_id, proposta_id)
            if not form.get('numero'):
                form['numero'] = proposta.numero
            if proposta.created_at and not form.get('created_at'):
                form['created_at'] = proposta.created_at.isoformat()
            existing_count = 0
        else:
            proposta = Proposta(user_id=user_id)
            existing_count = session.query(Proposta).filter(Proposta.user_id == user_id).count()

        record = serialize_for_storage(form, existing_count)

        proposta.numero = record['numero']
        proposta.cliente_nome = str(record['cliente_nome']).strip()
        proposta.cliente_wpp = str(record['cliente_wpp']).strip()
        proposta.tipo_movel = record['tipo_movel']
        proposta.validade = record['validade']
        proposta.medidas = record['medidas']
        proposta.v_total = record['v_total']
        proposta.status = record['status']
        proposta.created_at = _parse_datetime(record['created_at']) or datetime.now(timezone.utc)
        proposta.updated_at = datetime.now(timezone.utc)

        if proposta_id is None:
            session.add(proposta)
        session.commit()
    except NotFoundError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"[PROPOSTA] Failed to save proposta for user {user_id}")
        raise PersistenceError(payload={'detail': str(e.__class__.__name__)})

    logger.info(f"[PROPOSTA] Saved proposta id={proposta.id} numero={proposta.numero} user={user_id}")
    return proposta


def update_status(session: Session, user_id: int, proposta_id: int, status: str) -> Proposta:
    """Mark a proposta as sent or not sent."""
    allowed = [s.value for s in PropostaStatus]
    if status not in allowed:
        raise BusinessLogicError(f'Status inválido. Use: {", ".join(allowed)}')

    proposta = get_proposta(session, user_id, proposta_id)
    try:
        proposta.status = status
        proposta.updated_at = datetime.now(timezone.utc)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"[PROPOSTA] Failed to update status of proposta {proposta_id}")
        raise PersistenceError()
    return proposta


def delete_proposta(session: Session, user_id: int, proposta_id: int) -> None:
    proposta = get_proposta(session, user_id, proposta_id)
    try:
        session.delete(proposta)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"[PROPOSTA] Failed to delete proposta {proposta_id}")
        raise PersistenceError()
    logger.info(f"[PROPOSTA] Deleted proposta {proposta_id} (user={user_id})")
