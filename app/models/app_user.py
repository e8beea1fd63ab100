"""AppUser model - platform accounts with email/password authentication."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from app.database import Base, BigIntegerId


def normalize_email(email):
    """Normalize an email for lookups and storage."""
    return (email or '').strip().lower()


class AppUser(Base):
    """AppUser model - one account per payer email."""

    __tablename__ = 'app_user'

    id = Column(BigIntegerId, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)

    # Password reset
    reset_password_token = Column(String(255), nullable=True, unique=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    profile = relationship('Profile', back_populates='user', uselist=False)

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}')>"
