"""Profile service: business identity and proposal defaults of an account."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import BusinessLogicError, PersistenceError
from app.models import Profile, UNIDADES
from app.utils.number_format import to_int

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    'nome', 'responsavel', 'cpf', 'wpp', 'insta', 'endereco',
    'cidade', 'especialidade', 'logo', 'rodape',
)
INT_FIELDS = ('validade', 'prazo_min', 'prazo_max')


def get_profile(session: Session, user_id: int) -> Optional[Profile]:
    return session.get(Profile, user_id)


def profile_info(session: Session, user_id: int) -> Dict[str, Any]:
    """Profile fields as dict ({} when the account has no profile yet)."""
    profile = get_profile(session, user_id)
    return profile.to_dict() if profile else {}


def update_profile(session: Session, user_id: int, data: Dict[str, Any]) -> Profile:
    """
    Create or update the profile from editor data.

    Billing fields (is_active, stripe ids, subscription_status) are
    ignored even when present in `data`.

    Raises:
        BusinessLogicError: Missing nome or invalid unidade
        PersistenceError: The database rejected the write
    """
    nome = (data.get('nome') or '').strip()
    if not nome:
        raise BusinessLogicError('O nome da empresa é obrigatório.')

    unidade = (data.get('unidade') or 'mm').strip().lower()
    if unidade not in UNIDADES:
        raise BusinessLogicError(f'Unidade inválida. Use: {", ".join(UNIDADES)}')

    profile = get_profile(session, user_id)
    if profile is None:
        profile = Profile(id=user_id, is_active=False)
        session.add(profile)

    for field in TEXT_FIELDS:
        if field in data:
            value = data.get(field)
            if isinstance(value, str) and field != 'logo':
                value = value.strip()
            setattr(profile, field, value or None)
    profile.nome = nome
    profile.unidade = unidade

    for field in INT_FIELDS:
        if field in data:
            setattr(profile, field, to_int(data.get(field)))

    profile.updated_at = datetime.now(timezone.utc)

    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"[PROFILE] Failed to save profile {user_id}")
        raise PersistenceError()

    logger.info(f"[PROFILE] Profile {user_id} updated")
    return profile
