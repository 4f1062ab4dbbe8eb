import uuid
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from facturador.database import Base


class CertificateStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    public_key = Column(Text, nullable=False)
    private_key = Column(Text, nullable=False)  # never serialized in API responses
    issue_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    serial_number = Column(String(100), unique=True, nullable=False)
    issuer = Column(String(200), nullable=False)
    status = Column(
        SAEnum(CertificateStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=CertificateStatus.PENDING,
        nullable=False,
    )
    is_default = Column(Boolean, default=False, nullable=False)

    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    company = relationship("Company", back_populates="certificates")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "publicKey": self.public_key,
            "issueDate": self.issue_date.isoformat() if self.issue_date else None,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "serialNumber": self.serial_number,
            "issuer": self.issuer,
            "status": self.status.value if self.status else None,
            "isDefault": self.is_default,
            "companyId": self.company_id,
        }

    def __repr__(self):
        return f"<Certificate(id={self.id}, serial='{self.serial_number}', status='{self.status}')>"
