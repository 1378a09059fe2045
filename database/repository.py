"""
Audit persistence

Synchronous SQLAlchemy work runs in a worker thread so the async pipeline
never blocks on the database.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.exceptions import DatabaseError, NotFoundError, RunImmutableError, ValidationError
from core.logging import get_logger
from core.utils import normalize_url
from d1_discovery.constants import MAX_STORED_ENTITIES
from d1_discovery.types import CachedSitemap, ConnectionStatus, SiteRecord, StoredEntity
from database.models import AuditRun, AuditStatus, EntityStatus, ScanStatus, Site, SiteEntity, SiteSitemap
from database.session import SessionLocal, get_db_sync

logger = get_logger("audit_repository")

UPDATABLE_RUN_FIELDS = {
    "status",
    "device_type",
    "discovery_method",
    "pages_found",
    "pages_scanned",
    "score",
    "category_scores",
    "issues",
    "page_results",
    "screenshots",
    "progress",
    "summary",
    "started_at",
    "completed_at",
}

# The only field that may still be written once a run is terminal
POST_COMPLETION_FIELDS = {"summary"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _site_record(site: Site) -> SiteRecord:
    status = site.connection_status.value if site.connection_status else ConnectionStatus.DISCONNECTED.value
    return SiteRecord(
        id=site.id,
        url=site.url,
        account_id=site.account_id,
        connection_status=ConnectionStatus(status),
        site_key=site.site_key,
        site_secret=site.site_secret,
    )


class SqlAuditStore:
    """Audit runs, sites and previously synced site content"""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    # Runs

    def _create_run(self, site_id: Optional[str], device_type: Optional[str]) -> Dict[str, Any]:
        with get_db_sync(self.session_factory) as db:
            try:
                run = AuditRun(site_id=site_id, status=AuditStatus.PENDING, device_type=device_type, issues=[])
                db.add(run)
                db.commit()
                db.refresh(run)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Database error creating audit run for site {site_id}: {e}")
                raise DatabaseError(str(e), operation="create_run") from e
            logger.info(f"Created audit run {run.id} for site {site_id}")
            return run.to_dict()

    def _update_run(self, run_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - UPDATABLE_RUN_FIELDS
        if unknown:
            raise ValidationError(f"Unknown audit run fields: {sorted(unknown)}", field="fields")

        with get_db_sync(self.session_factory) as db:
            try:
                run = db.query(AuditRun).filter(AuditRun.id == run_id).first()
            except SQLAlchemyError as e:
                logger.error(f"Database error loading audit run {run_id}: {e}")
                raise DatabaseError(str(e), operation="update_run", run_id=run_id) from e
            if run is None:
                raise NotFoundError("AuditRun", run_id)
            if run.status.is_terminal and set(fields) - POST_COMPLETION_FIELDS:
                raise RunImmutableError(run_id, run.status.value)

            try:
                for name, value in fields.items():
                    setattr(run, name, value)
                db.commit()
                db.refresh(run)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Database error updating audit run {run_id}: {e}")
                raise DatabaseError(str(e), operation="update_run", run_id=run_id) from e
            return run.to_dict()

    def _get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with get_db_sync(self.session_factory) as db:
            run = db.query(AuditRun).filter(AuditRun.id == run_id).first()
            return run.to_dict() if run else None

    async def create_run(self, site_id: Optional[str], device_type: Optional[str] = None) -> Dict[str, Any]:
        return await asyncio.to_thread(self._create_run, site_id, device_type)

    async def update_run(self, run_id: str, **fields) -> Dict[str, Any]:
        """
        Apply `fields` to a run

        Raises:
            RunImmutableError: the run is COMPLETED/FAILED and a field other than summary was given
            NotFoundError: no such run
        """
        return await asyncio.to_thread(self._update_run, run_id, fields)

    async def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_run, run_id)

    # Sites

    def _find_site(self, site_id: str) -> Optional[SiteRecord]:
        with get_db_sync(self.session_factory) as db:
            site = db.query(Site).filter(Site.id == site_id).first()
            return _site_record(site) if site else None

    def _get_or_create_site(self, url: str) -> SiteRecord:
        url = normalize_url(url)
        with get_db_sync(self.session_factory) as db:
            site = db.query(Site).filter(Site.url == url).first()
            if site is None:
                try:
                    site = Site(url=url, connection_status=ConnectionStatus.DISCONNECTED.value)
                    db.add(site)
                    db.commit()
                    db.refresh(site)
                except SQLAlchemyError as e:
                    db.rollback()
                    raise DatabaseError(str(e), operation="create_site", url=url) from e
                logger.info(f"Registered site {site.id} for {url}")
            return _site_record(site)

    async def find_site(self, site_id: str) -> Optional[SiteRecord]:
        return await asyncio.to_thread(self._find_site, site_id)

    async def get_or_create_site(self, url: str) -> SiteRecord:
        return await asyncio.to_thread(self._get_or_create_site, url)

    # Previously synced content

    def _find_cached_sitemaps(self, site_id: str) -> List[CachedSitemap]:
        with get_db_sync(self.session_factory) as db:
            rows = (
                db.query(SiteSitemap)
                .filter(SiteSitemap.site_id == site_id, SiteSitemap.scan_status == ScanStatus.COMPLETED)
                .all()
            )
            return [CachedSitemap(url=row.url, content=row.content, is_index=bool(row.is_index)) for row in rows]

    def _find_stored_entities(self, site_id: str, limit: int) -> List[StoredEntity]:
        with get_db_sync(self.session_factory) as db:
            rows = (
                db.query(SiteEntity)
                .filter(SiteEntity.site_id == site_id, SiteEntity.url.isnot(None))
                .order_by(desc(SiteEntity.published_at))
                .limit(limit)
                .all()
            )
            return [
                StoredEntity(url=row.url, status=(row.status or EntityStatus.PUBLISHED).value) for row in rows
            ]

    async def find_cached_sitemaps(self, site_id: str) -> List[CachedSitemap]:
        return await asyncio.to_thread(self._find_cached_sitemaps, site_id)

    async def find_stored_entities(self, site_id: str, limit: int = MAX_STORED_ENTITIES) -> List[StoredEntity]:
        return await asyncio.to_thread(self._find_stored_entities, site_id, limit)
