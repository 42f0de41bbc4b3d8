"""Store model - each shop (loja) using the platform."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lojapdv.database import Base, BigIntegerPK


class Store(Base):
    """Store model - every business row is scoped by store_id."""

    __tablename__ = 'store'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)  # Display name
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    users = relationship('AppUser', back_populates='store')

    def __repr__(self):
        return f"<Store(id={self.id}, slug='{self.slug}', name='{self.name}')>"
