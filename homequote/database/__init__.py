"""
Database models package
"""
from homequote.database.models import Base, CatalogItemRecord, SessionPriorRecord

__all__ = ["Base", "CatalogItemRecord", "SessionPriorRecord"]
