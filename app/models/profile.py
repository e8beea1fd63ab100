"""
Profile model - business identity of a furniture maker plus billing status.
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerId


UNIDADES = ('mm', 'cm')


class Profile(Base):
    """
    One profile per account (primary key is the account id).

    Relationship: One-to-One with AppUser
    """
    __tablename__ = 'profiles'

    id = Column(BigIntegerId, ForeignKey('app_user.id', ondelete='CASCADE'), primary_key=True, autoincrement=False)

    # Business identity
    nome = Column(String(200), nullable=True)  # Company / display name
    responsavel = Column(String(200), nullable=True)  # Operator's personal name
    cpf = Column(String(32), nullable=True)  # CPF or CNPJ
    wpp = Column(String(50), nullable=True)
    insta = Column(String(100), nullable=True)
    endereco = Column(Text, nullable=True)
    cidade = Column(String(120), nullable=True)
    especialidade = Column(String(200), nullable=True)
    logo = Column(Text, nullable=True)  # data URL (base64)
    rodape = Column(Text, nullable=True)

    # Proposal defaults
    unidade = Column(String(2), nullable=False, default='mm')
    validade = Column(Integer, nullable=True)  # days
    prazo_min = Column(Integer, nullable=True)  # days
    prazo_max = Column(Integer, nullable=True)  # days

    # Billing (written only by the payment webhook)
    is_active = Column(Boolean, nullable=False, default=False)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    subscription_status = Column(String(20), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='profile')

    # Table constraints
    __table_args__ = (
        CheckConstraint("unidade IN ('mm', 'cm')", name='check_profile_unidade'),
    )

    def __repr__(self):
        return f'<Profile id={self.id} nome={self.nome} status={self.subscription_status}>'

    @property
    def has_active_subscription(self):
        """Check if the account is paid up."""
        return bool(self.is_active) and self.subscription_status == 'active'

    def to_dict(self):
        return {
            'id': self.id,
            'nome': self.nome,
            'responsavel': self.responsavel,
            'cpf': self.cpf,
            'wpp': self.wpp,
            'insta': self.insta,
            'endereco': self.endereco,
            'cidade': self.cidade,
            'especialidade': self.especialidade,
            'logo': self.logo,
            'rodape': self.rodape,
            'unidade': self.unidade,
            'validade': self.validade,
            'prazo_min': self.prazo_min,
            'prazo_max': self.prazo_max,
            'is_active': self.is_active,
            'subscription_status': self.subscription_status,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
