"""
PostgreSQL access for the scraping pipeline.

Every method opens its own connection, commits or rolls back, and closes
it again, so the store is safe to share between background runs.
"""

import os
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Any, List

import psycopg2
from psycopg2 import sql, errors
from psycopg2.extras import RealDictCursor, Json

from core.errors import PublishError

logger = logging.getLogger(__name__)

JOB_TABLES = ('scraping_jobs', 'bulk_scraping_jobs')

SCRAPED_SOURCES = ('scraped', 'scraped_specific', 'bulk_scraped')

# Descriptions shorter than this are candidates for a refresh
SHORT_DESCRIPTION_LENGTH = 200

_OPPORTUNITY_COLUMNS = (
    'title', 'description', 'organization', 'location', 'category_id',
    'application_url', 'application_deadline', 'source_url', 'source',
    'status', 'is_published', 'published_at', 'tags', 'metadata',
)


def get_db_url() -> Optional[str]:
    """SUPABASE_DB_URL wins over DATABASE_URL"""
    return os.getenv('SUPABASE_DB_URL') or os.getenv('DATABASE_URL')


def _adapt(value: Any) -> Any:
    if isinstance(value, dict):
        return Json(value)
    return value


class ScrapeStore:
    """Database collaborator for sources, jobs, opportunities and the hash index"""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or get_db_url()
        if not self.db_url:
            logger.warning("[store] No database URL configured (SUPABASE_DB_URL / DATABASE_URL)")

    def _get_db_conn(self):
        """Get database connection."""
        if not self.db_url:
            raise PublishError("Database not configured")
        try:
            return psycopg2.connect(self.db_url, connect_timeout=5)
        except psycopg2.Error as e:
            logger.error(f"[store] Failed to connect to database: {e}")
            raise

    def _fetchall(self, query, params=None) -> List[Dict[str, Any]]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def _fetchone(self, query, params=None) -> Optional[Dict[str, Any]]:
        rows = self._fetchall(query, params)
        return rows[0] if rows else None

    def _execute(self, query, params=None, returning: bool = False) -> Optional[Dict[str, Any]]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                row = cur.fetchone() if returning else None
            conn.commit()
            return dict(row) if row else None
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Categories

    def list_categories(self) -> Dict[str, str]:
        """lower(name) -> id"""
        rows = self._fetchall("SELECT id, name FROM categories")
        return {row['name'].lower(): str(row['id']) for row in rows if row.get('name')}

    def ensure_default_category(self, name: str = 'jobs') -> str:
        """
        Category used for bulk imports: `name`, else the first active
        category, else a newly created `name` category.
        """
        row = self._fetchone("SELECT id FROM categories WHERE lower(name) = lower(%s) LIMIT 1", (name,))
        if row:
            return str(row['id'])

        row = self._fetchone("SELECT id FROM categories WHERE is_active = true ORDER BY name LIMIT 1")
        if row:
            return str(row['id'])

        logger.info(f"[store] No categories found, creating default category '{name}'")
        row = self._execute(
            "INSERT INTO categories (name, description, is_active) VALUES (%s, %s, true) RETURNING id",
            (name, 'Job opportunities'),
            returning=True
        )
        return str(row['id'])

    # Hash index / opportunities

    def hash_exists(self, combined_hash: str) -> bool:
        row = self._fetchone(
            "SELECT id FROM opportunity_embeddings WHERE combined_hash = %s LIMIT 1",
            (combined_hash,)
        )
        return row is not None

    def insert_opportunity_with_hash(self, row: Dict[str, Any], combined_hash: Optional[str]) -> Optional[str]:
        """
        Insert an opportunity and its hash record in one transaction.

        Returns:
            New opportunity id, or None when the hash is already indexed
            (a concurrent run published the same content first)

        Raises:
            PublishError: on any other database error
        """
        columns = [c for c in _OPPORTUNITY_COLUMNS if c in row]
        insert = sql.SQL("INSERT INTO opportunities ({}) VALUES ({}) RETURNING id").format(
            sql.SQL(', ').join(sql.Identifier(c) for c in columns),
            sql.SQL(', ').join(sql.Placeholder() for _ in columns)
        )

        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(insert, [_adapt(row[c]) for c in columns])
                opportunity_id = cur.fetchone()['id']
                if combined_hash:
                    cur.execute(
                        "INSERT INTO opportunity_embeddings (opportunity_id, combined_hash) VALUES (%s, %s)",
                        (opportunity_id, combined_hash)
                    )
            conn.commit()
            return str(opportunity_id)
        except errors.UniqueViolation:
            conn.rollback()
            logger.info(f"[store] Hash {combined_hash[:12] if combined_hash else '-'} already indexed, rolled back")
            return None
        except psycopg2.Error as e:
            conn.rollback()
            raise PublishError(f"Failed to insert opportunity: {e}") from e
        finally:
            conn.close()

    def find_similar_opportunity(self, title: str, organization: str) -> Optional[Dict[str, Any]]:
        """Existing row whose title/organization contain the first 50/30 chars"""
        return self._fetchone(
            """
            SELECT id, description, metadata
            FROM opportunities
            WHERE title ILIKE %s AND organization ILIKE %s
            LIMIT 1
            """,
            (f"%{(title or '')[:50]}%", f"%{(organization or '')[:30]}%")
        )

    def update_opportunity(self, opportunity_id: str, fields: Dict[str, Any]):
        if not fields:
            return
        query = sql.SQL("UPDATE opportunities SET {}, updated_at = NOW() WHERE id = %s").format(
            sql.SQL(', ').join(
                sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder()) for k in fields
            )
        )
        try:
            self._execute(query, [_adapt(v) for v in fields.values()] + [opportunity_id])
        except psycopg2.Error as e:
            raise PublishError(f"Failed to update opportunity {opportunity_id}: {e}") from e

    def list_opportunities_for_refresh(self, update_all: bool = False, limit: int = 10) -> List[Dict[str, Any]]:
        """Approved scraped opportunities, short descriptions only unless update_all"""
        return self._fetchall(
            """
            SELECT id, title, description, source_url, application_url, organization
            FROM opportunities
            WHERE status = 'approved'
              AND source = ANY(%s)
              AND (%s OR description IS NULL OR length(description) < %s)
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (list(SCRAPED_SOURCES), bool(update_all), SHORT_DESCRIPTION_LENGTH, limit)
        )

    # Jobs

    def _job_table(self, table: str) -> sql.Identifier:
        if table not in JOB_TABLES:
            raise ValueError(f"Unknown job table: {table}")
        return sql.Identifier(table)

    def create_job(self, table: str, extra: Optional[Dict[str, Any]] = None) -> str:
        """Insert a running job row and return its id"""
        fields = {'status': 'running', 'started_at': datetime.now(timezone.utc)}
        fields.update(extra or {})
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING id").format(
            self._job_table(table),
            sql.SQL(', ').join(sql.Identifier(k) for k in fields),
            sql.SQL(', ').join(sql.Placeholder() for _ in fields)
        )
        row = self._execute(query, [_adapt(v) for v in fields.values()], returning=True)
        return str(row['id'])

    def finish_job(self, table: str, job_id: str, fields: Dict[str, Any]):
        """Write the terminal job state (status, counters, error_message)"""
        fields = dict(fields)
        fields.setdefault('completed_at', datetime.now(timezone.utc))
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s").format(
            self._job_table(table),
            sql.SQL(', ').join(
                sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder()) for k in fields
            )
        )
        self._execute(query, [_adapt(v) for v in fields.values()] + [job_id])

    def get_job(self, table: str, job_id: str) -> Optional[Dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {} WHERE id = %s").format(self._job_table(table))
        return self._fetchone(query, (job_id,))

    # Sources

    def list_sources(self, source_id: Optional[str] = None, due_before: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Active dynamic sources.

        Args:
            source_id: only this source
            due_before: only sources never scraped or last scraped before this time
        """
        if source_id:
            return self._fetchall(
                "SELECT * FROM scraping_sources WHERE is_active = true AND id = %s",
                (source_id,)
            )
        if due_before:
            return self._fetchall(
                """
                SELECT * FROM scraping_sources
                WHERE is_active = true
                  AND (last_scraped_at IS NULL OR last_scraped_at < %s)
                ORDER BY success_rate DESC
                """,
                (due_before,)
            )
        return self._fetchall("SELECT * FROM scraping_sources WHERE is_active = true ORDER BY success_rate DESC")

    def update_source(self, source_id: str, fields: Dict[str, Any]):
        query = sql.SQL("UPDATE scraping_sources SET {} WHERE id = %s").format(
            sql.SQL(', ').join(
                sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder()) for k in fields
            )
        )
        self._execute(query, list(fields.values()) + [source_id])

    def get_bulk_config(self, config_id: str) -> Optional[Dict[str, Any]]:
        return self._fetchone("SELECT * FROM bulk_scraping_configs WHERE id = %s", (config_id,))

    # Analytics

    def record_analytics(
        self,
        source_name: str,
        scraped: int,
        published: int,
        duplicates: int,
        errors_count: int,
        processing_time_ms: int
    ):
        """Add one run to the per-source daily aggregate"""
        self._execute(
            """
            INSERT INTO scraping_analytics
                (date, source_name, total_scraped, total_published, duplicates_found,
                 errors_count, avg_processing_time_ms, runs)
            VALUES (CURRENT_DATE, %s, %s, %s, %s, %s, %s, 1)
            ON CONFLICT (date, source_name) DO UPDATE SET
                total_scraped = scraping_analytics.total_scraped + EXCLUDED.total_scraped,
                total_published = scraping_analytics.total_published + EXCLUDED.total_published,
                duplicates_found = scraping_analytics.duplicates_found + EXCLUDED.duplicates_found,
                errors_count = scraping_analytics.errors_count + EXCLUDED.errors_count,
                avg_processing_time_ms = (
                    scraping_analytics.avg_processing_time_ms * scraping_analytics.runs
                    + EXCLUDED.avg_processing_time_ms
                ) / (scraping_analytics.runs + 1),
                runs = scraping_analytics.runs + 1
            """,
            (source_name, scraped, published, duplicates, errors_count, processing_time_ms)
        )
