"""Proposta model for furniture quotes (propostas de orçamento)."""
import enum
from sqlalchemy import Column, BigInteger, String, Integer, Float, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerId, JSONType


class PropostaStatus(enum.Enum):
    """Proposta status enum."""
    NOT_SENT = "not_sent"
    SENT = "sent"


# Labels found in older rows, mapped to the canonical status
STATUS_SYNONYMS = {
    'not_sent': PropostaStatus.NOT_SENT,
    'active': PropostaStatus.NOT_SENT,
    'nao_enviada': PropostaStatus.NOT_SENT,
    'ativa': PropostaStatus.NOT_SENT,
    'sent': PropostaStatus.SENT,
    'closed': PropostaStatus.SENT,
    'enviada': PropostaStatus.SENT,
    'fechada': PropostaStatus.SENT,
}


def normalize_status(value) -> str:
    """
    Normalize a stored status label to 'not_sent' or 'sent'.

    Empty or unknown labels count as not sent.
    """
    if isinstance(value, PropostaStatus):
        return value.value
    if not value:
        return PropostaStatus.NOT_SENT.value
    status = STATUS_SYNONYMS.get(str(value).strip().lower(), PropostaStatus.NOT_SENT)
    return status.value


# Columns written by the current code
CORE_COLUMNS = (
    'id', 'user_id', 'numero', 'cliente_nome', 'cliente_wpp', 'tipo_movel',
    'medidas', 'v_total', 'status', 'created_at', 'updated_at',
)

# Columns only populated by rows saved before `medidas` became nested
LEGACY_COLUMNS = (
    'ambientes', 'cliente_end', 'cliente_ref',
    'chapa', 'acabamento', 'ferragens', 'detalhes', 'inicio', 'entrega',
    'prazo_obs', 'garantia', 'incluso', 'excluso', 'validade', 'obs_final',
    'v_mat', 'v_despesas', 'v_ferr', 'v_outros', 'v_margem',
    'pgto_formas', 'pgto_parcelas', 'pgto_juros', 'pgto_pix', 'pgto_pix_tipo', 'pgto_condicao',
)


class Proposta(Base):
    """
    Proposta (quote document) for one client.

    `numero` is a per-account display number assigned as count + 1 at save
    time; two concurrent saves can get the same number.
    """

    __tablename__ = 'propostas'

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id', ondelete='CASCADE'), nullable=False, index=True)
    numero = Column(Integer, nullable=True)
    cliente_nome = Column(String(255), nullable=True)
    cliente_wpp = Column(String(50), nullable=True)
    tipo_movel = Column(String(120), nullable=True)
    medidas = Column(JSONType, nullable=True)
    v_total = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PropostaStatus.NOT_SENT.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Legacy columns (read-only for new code)
    ambientes = Column(JSONType, nullable=True)
    cliente_end = Column(Text, nullable=True)
    cliente_ref = Column(Text, nullable=True)
    chapa = Column(String(120), nullable=True)
    acabamento = Column(String(120), nullable=True)
    ferragens = Column(String(120), nullable=True)
    detalhes = Column(Text, nullable=True)
    inicio = Column(String(40), nullable=True)
    entrega = Column(String(40), nullable=True)
    prazo_obs = Column(Text, nullable=True)
    garantia = Column(Text, nullable=True)
    incluso = Column(Text, nullable=True)
    excluso = Column(Text, nullable=True)
    validade = Column(String(40), nullable=True)
    obs_final = Column(Text, nullable=True)
    v_mat = Column(Float, nullable=True)
    v_despesas = Column(Float, nullable=True)
    v_ferr = Column(Float, nullable=True)
    v_outros = Column(Float, nullable=True)
    v_margem = Column(Float, nullable=True)
    pgto_formas = Column(JSONType, nullable=True)
    pgto_parcelas = Column(Integer, nullable=True)
    pgto_juros = Column(Boolean, nullable=True)
    pgto_pix = Column(String(120), nullable=True)
    pgto_pix_tipo = Column(String(20), nullable=True)
    pgto_condicao = Column(Text, nullable=True)

    # Relationships
    user = relationship('AppUser')

    def __repr__(self):
        return f"<Proposta(id={self.id}, numero={self.numero}, status='{self.status}', total={self.v_total})>"

    def to_record(self) -> dict:
        """Raw storage record (every column, legacy ones included)."""
        record = {}
        for name in CORE_COLUMNS + LEGACY_COLUMNS:
            value = getattr(self, name)
            if name in ('created_at', 'updated_at') and value is not None:
                value = value.isoformat()
            record[name] = value
        # Absent legacy columns stay absent so older shapes resolve correctly
        return {k: v for k, v in record.items() if v is not None or k in CORE_COLUMNS}
