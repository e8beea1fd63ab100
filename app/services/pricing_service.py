"""
Pricing and storage mapping for propostas.

The wizard works on a flat dict (one key per form field). At rest most of
those fields live inside the `medidas` JSON column with a nested shape:

    medidas = {
        'ambientes': [...],
        'cliente': {'endereco', 'referencia'},
        'financeiro': {'v_mat', 'v_despesas', 'v_ferr', 'v_outros', 'v_margem'},
        'detalhes_tecnicos': {'chapa', ..., 'obs_final'},
        'pgto': {'formas', 'parcelas', 'juros', 'pix', 'pix_tipo', 'condicao'},
    }

Older rows use either a bare list of ambientes in `medidas` or separate
columns. `deserialize_from_storage` is the only place that looks at the
shape; everything else works on the flat dict it returns.
"""
import copy
import enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.models.proposta import PropostaStatus, normalize_status
from app.utils.number_format import to_number

DEFAULT_TIPO_MOVEL = 'Móvel Planejado'
DEFAULT_PGTO_FORMAS = ['Dinheiro', 'PIX']
DEFAULT_PGTO_PARCELAS = 1
DEFAULT_PIX_TIPO = 'CPF'

FINANCEIRO_FIELDS = ('v_mat', 'v_despesas', 'v_ferr', 'v_outros', 'v_margem')

DETALHES_TECNICOS_FIELDS = (
    'chapa', 'acabamento', 'ferragens', 'detalhes', 'inicio', 'entrega',
    'prazo_obs', 'garantia', 'incluso', 'excluso', 'obs_final',
)

# nested key -> flat key
CLIENTE_FIELDS = {
    'endereco': 'cliente_end',
    'referencia': 'cliente_ref',
}

PGTO_FIELDS = {
    'formas': 'pgto_formas',
    'parcelas': 'pgto_parcelas',
    'juros': 'pgto_juros',
    'pix': 'pgto_pix',
    'pix_tipo': 'pgto_pix_tipo',
    'condicao': 'pgto_condicao',
}

# Flat keys that are stored as top-level columns
TOP_LEVEL_FIELDS = ('cliente_nome', 'cliente_wpp', 'validade')


class StorageShape(enum.Enum):
    """Layouts a stored proposta can have."""
    NESTED = "nested"
    LEGACY_ARRAY = "legacy_array"
    FLAT = "flat"


def normalize_formas(value) -> list:
    """
    Coerce stored or submitted payment methods to a list of strings.

    A bare string (single checkbox from a form post) becomes a one-item
    list; empty items are dropped.
    """
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(item) for item in value if item is not None and item != '']


# =====================================================
# PRICING
# =====================================================

def compute_subtotal(v_mat=0, v_despesas=0, v_ferr=0, v_outros=0) -> float:
    """Sum of the four cost inputs (malformed values count as 0)."""
    return to_number(v_mat) + to_number(v_despesas) + to_number(v_ferr) + to_number(v_outros)


def compute_total(v_mat=0, v_despesas=0, v_ferr=0, v_outros=0, v_margem=0) -> float:
    """
    Client-facing total: subtotal * (1 + margin / 100).

    The margin has no bounds (negative or above 100 are accepted). The
    result is not rounded; use money_br() to display it.

    Example:
        compute_total(1000, 200, 300, 0, 30) -> 1950.0
    """
    subtotal = compute_subtotal(v_mat, v_despesas, v_ferr, v_outros)
    return subtotal * (1 + to_number(v_margem) / 100)


def compute_profit(v_mat=0, v_despesas=0, v_ferr=0, v_outros=0, v_margem=0) -> float:
    """Profit share of the total (subtotal * margin / 100)."""
    subtotal = compute_subtotal(v_mat, v_despesas, v_ferr, v_outros)
    return subtotal * (to_number(v_margem) / 100)


def pricing_summary(form: Dict[str, Any]) -> Dict[str, float]:
    """Subtotal, profit and total for a flat form."""
    values = [form.get(field) for field in FINANCEIRO_FIELDS]
    return {
        'subtotal': compute_subtotal(*values[:4]),
        'lucro': compute_profit(*values),
        'total': compute_total(*values),
    }


# =====================================================
# STORAGE MAPPING
# =====================================================

def serialize_for_storage(form: Dict[str, Any], existing_count: int = 0) -> Dict[str, Any]:
    """
    Build the storage record for a flat wizard form.

    Args:
        form: Flat proposta state (not modified)
        existing_count: Number of propostas the account already has; used
            for `numero` when the form has none yet

    Returns:
        dict with the top-level columns and the nested `medidas` JSON
    """
    ambientes = copy.deepcopy(form.get('ambientes') or [])

    tipo_movel = DEFAULT_TIPO_MOVEL
    if ambientes and ambientes[0].get('tipo'):
        tipo_movel = str(ambientes[0]['tipo'])

    record = {field: form.get(field) for field in TOP_LEVEL_FIELDS}
    pgto = {nested: copy.deepcopy(form.get(flat)) for nested, flat in PGTO_FIELDS.items()}
    pgto['formas'] = normalize_formas(pgto['formas'])

    record.update({
        'numero': form.get('numero') or existing_count + 1,
        'tipo_movel': tipo_movel,
        'v_total': compute_total(*(form.get(field) for field in FINANCEIRO_FIELDS)),
        # Every save-and-send marks the proposta as sent
        'status': PropostaStatus.SENT.value,
        'created_at': form.get('created_at') or datetime.now(timezone.utc).isoformat(),
        'medidas': {
            'ambientes': ambientes,
            'cliente': {nested: form.get(flat) for nested, flat in CLIENTE_FIELDS.items()},
            'financeiro': {field: form.get(field) for field in FINANCEIRO_FIELDS},
            'detalhes_tecnicos': {field: form.get(field) for field in DETALHES_TECNICOS_FIELDS},
            'pgto': pgto,
        },
    })
    return record


def resolve_storage_shape(record: Dict[str, Any]) -> StorageShape:
    """Tell which layout a storage record uses."""
    medidas = record.get('medidas')
    if isinstance(medidas, dict):
        return StorageShape.NESTED
    if isinstance(medidas, list) and medidas and not record.get('ambientes'):
        return StorageShape.LEGACY_ARRAY
    return StorageShape.FLAT


def _from_group(group: Optional[Dict[str, Any]], key: str, record: Dict[str, Any], flat_key: str):
    """Nested value when the group has the key, else the legacy column."""
    if isinstance(group, dict) and key in group:
        return group[key]
    return record.get(flat_key)


def deserialize_from_storage(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rebuild the flat proposta state from a storage record.

    Nested `medidas` values win over legacy columns. The returned dict
    always has `ambientes` as a list and a normalized `status`, so flat
    records are not returned verbatim: a missing `ambientes` becomes `[]`,
    a legacy status such as 'active' is mapped to its current value and a
    `pgto_formas` column is coerced to a list of strings.
    """
    shape = resolve_storage_shape(record)
    flat = dict(record)

    if shape is StorageShape.NESTED:
        medidas = flat.pop('medidas')
        cliente = medidas.get('cliente') or {}
        financeiro = medidas.get('financeiro')
        tecnicos = medidas.get('detalhes_tecnicos')
        pgto = medidas.get('pgto') or {}

        flat['ambientes'] = copy.deepcopy(medidas.get('ambientes') or [])

        for nested, flat_key in CLIENTE_FIELDS.items():
            flat[flat_key] = cliente.get(nested) or record.get(flat_key)

        for field in FINANCEIRO_FIELDS:
            flat[field] = _from_group(financeiro, field, record, field)

        for field in DETALHES_TECNICOS_FIELDS:
            flat[field] = _from_group(tecnicos, field, record, field)

        flat['pgto_formas'] = normalize_formas(pgto.get('formas')) or list(DEFAULT_PGTO_FORMAS)
        flat['pgto_parcelas'] = pgto.get('parcelas') or DEFAULT_PGTO_PARCELAS
        flat['pgto_juros'] = pgto.get('juros') or False
        flat['pgto_pix'] = pgto.get('pix') or ''
        flat['pgto_pix_tipo'] = pgto.get('pix_tipo') or DEFAULT_PIX_TIPO
        flat['pgto_condicao'] = pgto.get('condicao') or ''

    elif shape is StorageShape.LEGACY_ARRAY:
        flat['ambientes'] = copy.deepcopy(flat.pop('medidas'))

    elif flat.get('ambientes') is None:
        flat['ambientes'] = []

    if shape is not StorageShape.NESTED and flat.get('pgto_formas') is not None:
        flat['pgto_formas'] = normalize_formas(flat['pgto_formas'])

    flat['status'] = normalize_status(flat.get('status'))
    return flat
