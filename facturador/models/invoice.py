import uuid
from enum import Enum

from sqlalchemy import Column, Date, DateTime, Enum as SAEnum, ForeignKey, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from facturador.database import Base


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("company_id", "prefix", "number", name="uq_invoice_company_number"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    number = Column(String(20), nullable=False)
    prefix = Column(String(10), nullable=True)
    issue_date = Column(Date, nullable=False)
    total = Column(Numeric(12, 2), default=0, nullable=False)
    customer_name = Column(String(150), nullable=False)
    customer_email = Column(String(100), nullable=True)

    status = Column(
        SAEnum(InvoiceStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=InvoiceStatus.DRAFT,
        nullable=False,
    )
    cufe = Column(String(100), unique=True, nullable=True)
    dian_response = Column(Text, nullable=True)
    sent_to_dian_at = Column(DateTime(timezone=True), nullable=True)
    dian_response_at = Column(DateTime(timezone=True), nullable=True)
    sent_to_customer_at = Column(DateTime(timezone=True), nullable=True)

    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    company = relationship("Company", back_populates="invoices")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def full_number(self) -> str:
        return f"{self.prefix or ''}{self.number}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "prefix": self.prefix,
            "issueDate": self.issue_date.isoformat() if self.issue_date else None,
            "total": float(self.total or 0),
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "status": self.status.value,
            "cufe": self.cufe,
            "dianResponse": self.dian_response,
            "sentToDianAt": self.sent_to_dian_at.isoformat() if self.sent_to_dian_at else None,
            "dianResponseAt": self.dian_response_at.isoformat() if self.dian_response_at else None,
            "sentToCustomerAt": self.sent_to_customer_at.isoformat() if self.sent_to_customer_at else None,
            "companyId": self.company_id,
        }

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.full_number}', status='{self.status}')>"
