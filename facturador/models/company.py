import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from facturador.database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(150), nullable=False)
    nit = Column(String(20), unique=True, nullable=False)
    dv = Column(String(1), default="2")  # Dígito de verificación
    email = Column(String(100), nullable=True)

    economic_activity = Column(String(50), nullable=True)
    tax_regime = Column(String(50), nullable=True)

    # Registro como facturador electrónico
    is_registered = Column(Boolean, default=False, nullable=False)
    registration_id = Column(String(36), nullable=True)
    registration_date = Column(DateTime(timezone=True), nullable=True)

    # Resolución de facturación
    authorization_number = Column(String(20), nullable=True)
    authorization_date = Column(DateTime(timezone=True), nullable=True)
    authorization_prefix = Column(String(10), nullable=True)
    authorization_range_from = Column(Integer, nullable=True)
    authorization_range_to = Column(Integer, nullable=True)

    is_authorized = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    certificates = relationship("Certificate", back_populates="company")
    invoices = relationship("Invoice", back_populates="company")

    def __repr__(self):
        return f"<Company(id={self.id}, nit='{self.nit}', authorized={self.is_authorized})>"
