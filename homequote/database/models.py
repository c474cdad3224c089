"""
Database models for the HomeQuote catalog and session state
"""
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CatalogItemRecord(Base):
    """Priced catalog item"""

    __tablename__ = "catalog_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(500), nullable=False, index=True)
    description = Column(Text, nullable=True)
    details = Column(Text, nullable=True)
    variation_name = Column(String(255), nullable=True)
    price = Column(Integer, nullable=False, index=True)  # whole INR
    currency = Column(String(3), default="INR")
    category = Column(String(100), nullable=False, index=True)
    subcategory = Column(String(100), nullable=True, index=True)
    image_url = Column(Text, nullable=True)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("idx_catalog_category_price", "category", "price"),)

    def __repr__(self):
        return f"<CatalogItemRecord(id={self.id}, name='{self.name[:40]}', price={self.price})>"


class SessionPriorRecord(Base):
    """Persisted prior-turn state for a quotation session"""

    __tablename__ = "session_priors"

    session_id = Column(String(100), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SessionPriorRecord(session_id='{self.session_id}')>"
