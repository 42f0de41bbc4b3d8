"""AppUser model - platform users with email/password authentication."""
import enum
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from lojapdv.database import Base, BigIntegerPK


class UserRole(enum.Enum):
    """User roles."""
    OWNER = 'owner'
    STAFF = 'staff'
    ADMIN = 'admin'  # platform admin, sees every store


class AppUser(Base):
    """AppUser model - linked to at most one store."""

    __tablename__ = 'app_user'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    store_id = Column(BigInteger, ForeignKey('store.id'), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.OWNER.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    store = relationship('Store', back_populates='users')

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def is_admin(self):
        """Check if user is a platform admin."""
        return (self.role or '').lower() == UserRole.ADMIN.value

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', role='{self.role}')>"
