"""Models package - exports all SQLAlchemy models."""
from app.models.app_user import AppUser, normalize_email
from app.models.profile import Profile, UNIDADES
from app.models.proposta import Proposta, PropostaStatus, normalize_status

__all__ = [
    'AppUser', 'normalize_email',
    'Profile', 'UNIDADES',
    'Proposta', 'PropostaStatus', 'normalize_status',
]
