"""Ambiente (environment) and peça (piece) list operations for the wizard."""

import copy
import uuid
from typing import Any, Dict, List, Optional

# Environment types offered by the wizard; free text is accepted as well
AMBIENTE_TIPOS = (
    'Cozinha Planejada',
    'Guarda-Roupa',
    'Dormitório Casal',
    'Dormitório Solteiro',
    'Dormitório Infantil',
    'Ambiente de Criança',
    'Home Office',
    'Escritório',
    'Recepção',
    'Closet',
    'Banheiro',
    'Rack / Painel TV',
    'Área de Serviço',
    'Varanda',
    'Área Externa',
    'Móvel Sob Medida',
    'Ambiente Personalizado',
)

AMBIENTE_FIELDS = ('tipo', 'detalhes')
PECA_FIELDS = ('nome', 'l', 'a', 'p')


def new_peca() -> Dict[str, str]:
    return {'nome': '', 'l': '', 'a': '', 'p': ''}


def new_ambiente(tipo: str, ambiente_id: Optional[str] = None) -> Dict[str, Any]:
    """Environment with one empty piece."""
    return {
        'id': ambiente_id or uuid.uuid4().hex,
        'tipo': tipo,
        'pecas': [new_peca()],
        'detalhes': '',
    }


def _copy(ambientes: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return copy.deepcopy(list(ambientes or []))


def _find(ambientes: List[Dict[str, Any]], ambiente_id: str) -> Optional[Dict[str, Any]]:
    for ambiente in ambientes:
        if ambiente.get('id') == ambiente_id:
            return ambiente
    return None


def add_ambiente(ambientes, tipo: str, ambiente_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Append a new environment of the given type."""
    result = _copy(ambientes)
    result.append(new_ambiente(tipo, ambiente_id))
    return result


def remove_ambiente(ambientes, ambiente_id: str) -> List[Dict[str, Any]]:
    return [a for a in _copy(ambientes) if a.get('id') != ambiente_id]


def update_ambiente(ambientes, ambiente_id: str, field: str, value: Any) -> List[Dict[str, Any]]:
    """Set `tipo` or `detalhes` on one environment."""
    result = _copy(ambientes)
    if field not in AMBIENTE_FIELDS:
        return result
    ambiente = _find(result, ambiente_id)
    if ambiente is not None:
        ambiente[field] = value
    return result


def add_peca(ambientes, ambiente_id: str) -> List[Dict[str, Any]]:
    result = _copy(ambientes)
    ambiente = _find(result, ambiente_id)
    if ambiente is not None:
        ambiente.setdefault('pecas', []).append(new_peca())
    return result


def update_peca(ambientes, ambiente_id: str, index: int, field: str, value: Any) -> List[Dict[str, Any]]:
    """
    Set one field of a piece.

    Only nome, l, a and p are editable. Unknown environments and
    out-of-range indices leave the list unchanged.
    """
    result = _copy(ambientes)
    if field not in PECA_FIELDS:
        return result
    ambiente = _find(result, ambiente_id)
    if ambiente is None:
        return result
    pecas = ambiente.setdefault('pecas', [])
    if 0 <= index < len(pecas):
        pecas[index][field] = value
    return result


def remove_peca(ambientes, ambiente_id: str, index: int) -> List[Dict[str, Any]]:
    result = _copy(ambientes)
    ambiente = _find(result, ambiente_id)
    if ambiente is None:
        return result
    pecas = ambiente.setdefault('pecas', [])
    if 0 <= index < len(pecas):
        del pecas[index]
    return result
