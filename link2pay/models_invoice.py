"""
Invoice, Product and Storefront Models
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base
from .models import generate_uuid, utcnow


class Invoice(Base):
    """Invoice sent to a merchant's client over WhatsApp"""

    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)

    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=True)
    client_phone = Column(String(32), nullable=True)

    # Pricing
    subtotal = Column(Float, default=0)
    vat_enabled = Column(Boolean, default=False)
    vat_amount = Column(Float, default=0)
    delivery_fee = Column(Float, default=0)
    total_amount = Column(Float, nullable=False)

    # pending, sent, paid, failed, overdue, cancelled
    status = Column(String(50), default="pending", index=True)

    # Payment options
    payment_enabled = Column(Boolean, default=True)
    show_payfast = Column(Boolean, default=True)
    show_snapscan = Column(Boolean, default=False)
    payment_instructions = Column(Text, nullable=True)

    # Delivery
    delivery_method = Column(String(50), nullable=True)
    delivery_address = Column(Text, nullable=True)
    delivery_date = Column(String(20), nullable=True)
    delivery_notes = Column(Text, nullable=True)

    auto_reminder_enabled = Column(Boolean, default=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    whatsapp_paid_sent = Column(Boolean, default=False)

    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.created_at",
    )
    profile = relationship("Profile")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id"), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=1)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="items")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    # Short merchant-facing code used by quick invoice commands (e.g. P-8XK2QA)
    product_id = Column(String(50), index=True, nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    category = Column(String(100), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)
    inventory_enabled = Column(Boolean, default=False)
    stock_quantity = Column(Integer, nullable=True)
    delivery_method = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class StoreSection(Base):
    """Custom content block rendered on the public storefront"""

    __tablename__ = "store_sections"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    section_type = Column(String(50), nullable=False)  # about, testimonials, faq, gallery...
    section_title = Column(String(255), nullable=True)
    section_content = Column(Text, nullable=True)
    section_order = Column(Integer, default=0)
    is_enabled = Column(Boolean, default=True)
    section_settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
