"""
Database models for SiteAuditor
"""

import enum
import uuid

from sqlalchemy import JSON, TIMESTAMP, Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database.base import Base, DatabaseAgnosticEnum


def generate_uuid():
    """Generate a new UUID"""
    return str(uuid.uuid4())


# Enums
class AuditStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (AuditStatus.COMPLETED, AuditStatus.FAILED)


class ConnectionStatus(str, enum.Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"


class EntityStatus(str, enum.Enum):
    PUBLISHED = "PUBLISHED"
    DRAFT = "DRAFT"
    PRIVATE = "PRIVATE"
    TRASHED = "TRASHED"


class ScanStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Site(Base):
    __tablename__ = "sites"

    id = Column(String, primary_key=True, default=generate_uuid)
    url = Column(String(500), nullable=False, index=True)
    name = Column(String(255))
    account_id = Column(String, index=True)
    connection_status = Column(DatabaseAgnosticEnum(ConnectionStatus), default=ConnectionStatus.DISCONNECTED)

    # Plugin credentials
    site_key = Column(String(255))
    site_secret = Column(String(255))

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    entities = relationship("SiteEntity", back_populates="site", cascade="all, delete-orphan")
    sitemaps = relationship("SiteSitemap", back_populates="site", cascade="all, delete-orphan")
    audit_runs = relationship("AuditRun", back_populates="site")


class SiteEntity(Base):
    """A post, page or custom post type item synced from the site"""

    __tablename__ = "site_entities"

    id = Column(String, primary_key=True, default=generate_uuid)
    site_id = Column(String, ForeignKey("sites.id"), nullable=False)
    url = Column(String(1000))
    title = Column(String(500))
    entity_type = Column(String(100), default="post")
    status = Column(DatabaseAgnosticEnum(EntityStatus), default=EntityStatus.PUBLISHED)
    published_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    site = relationship("Site", back_populates="entities")

    __table_args__ = (Index("idx_site_entities_site_published", "site_id", "published_at"),)


class SiteSitemap(Base):
    """Sitemap body captured by an earlier scan"""

    __tablename__ = "site_sitemaps"

    id = Column(String, primary_key=True, default=generate_uuid)
    site_id = Column(String, ForeignKey("sites.id"), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    content = Column(Text)
    is_index = Column(Boolean, default=False)
    scan_status = Column(DatabaseAgnosticEnum(ScanStatus), default=ScanStatus.PENDING)
    created_at = Column(TIMESTAMP, server_default=func.now())

    site = relationship("Site", back_populates="sitemaps")


class AuditRun(Base):
    """One execution of the audit pipeline for a site"""

    __tablename__ = "audit_runs"

    id = Column(String, primary_key=True, default=generate_uuid)
    site_id = Column(String, ForeignKey("sites.id"), nullable=True, index=True)
    status = Column(DatabaseAgnosticEnum(AuditStatus), nullable=False, default=AuditStatus.PENDING)
    device_type = Column(String(20))

    # Discovery
    discovery_method = Column(String(50))
    pages_found = Column(Integer, default=0)
    pages_scanned = Column(Integer, default=0)

    # Results
    score = Column(Integer)
    category_scores = Column(JSON)
    issues = Column(JSON, default=list)
    page_results = Column(JSON, default=list)
    screenshots = Column(JSON)
    progress = Column(JSON)
    summary = Column(Text)

    started_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    site = relationship("Site", back_populates="audit_runs")

    __table_args__ = (Index("idx_audit_runs_site_created", "site_id", "created_at"),)

    def to_dict(self):
        return {
            "id": self.id,
            "siteId": self.site_id,
            "status": self.status.value if self.status else None,
            "deviceType": self.device_type,
            "discoveryMethod": self.discovery_method,
            "pagesFound": self.pages_found,
            "pagesScanned": self.pages_scanned,
            "score": self.score,
            "categoryScores": self.category_scores,
            "issues": self.issues or [],
            "pageResults": self.page_results or [],
            "screenshots": self.screenshots,
            "progress": self.progress,
            "summary": self.summary,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }
