"""
Document Storage

Keyed record table for ingested documents and their analysis.

PRINCIPLES:
===========
1. external_id is the dedupe key; inserting it twice keeps one row
2. A document is pending until exactly one analysis is attached
3. Per-item write failures come back as outcomes, never exceptions
4. The adapter never retries; callers decide
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union
import json
import sqlite3

from .contracts import Document, utcnow

if TYPE_CHECKING:
    from adapter.contracts import AnalysisResult


@dataclass(frozen=True)
class StoreOutcome:
    """Result of a single write."""
    success: bool
    created: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, created: bool = True) -> 'StoreOutcome':
        return cls(success=True, created=created)

    @classmethod
    def failed(cls, error: str) -> 'StoreOutcome':
        return cls(success=False, error=error)


@dataclass(frozen=True)
class StoredDocument:
    """A document together with its stored analysis."""
    document: Document
    analysis: Optional[Dict[str, Any]]
    analyzed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.document.to_record()
        data['analysis'] = self.analysis
        data['analyzed_at'] = self.analyzed_at.isoformat() if self.analyzed_at else None
        return data


@dataclass(frozen=True)
class StoreStats:
    total: int
    analyzed: int
    last_analysis_at: Optional[datetime]

    @property
    def pending(self) -> int:
        return self.total - self.analyzed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalRecords': self.total,
            'analyzedRecords': self.analyzed,
            'pendingAnalysis': self.pending,
            'lastAnalysisTimestamp': (
                self.last_analysis_at.isoformat() if self.last_analysis_at else None
            ),
        }


class DocumentStore(ABC):
    """Interface the pipeline depends on."""

    @abstractmethod
    def exists(self, external_id: str) -> bool:
        pass

    @abstractmethod
    def insert(self, document: Document) -> StoreOutcome:
        pass

    @abstractmethod
    def update_analysis(self, external_id: str, analysis: 'AnalysisResult') -> StoreOutcome:
        pass

    @abstractmethod
    def query_pending(self) -> List[Document]:
        pass

    @abstractmethod
    def query_completed(self) -> List[StoredDocument]:
        pass

    @abstractmethod
    def stats(self) -> StoreStats:
        pass

    @abstractmethod
    def clear(self) -> int:
        pass


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-backed document store.

    One connection per operation, so a single instance can be shared
    by request threads.
    """

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_conn() as conn:
            conn.executescript('''
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    external_id TEXT NOT NULL UNIQUE,
                    origin TEXT NOT NULL,
                    title TEXT,
                    body TEXT,
                    author TEXT,
                    score INTEGER DEFAULT 0,
                    comment_count INTEGER DEFAULT 0,
                    url TEXT,
                    created_at TEXT NOT NULL,
                    ingested_at TEXT NOT NULL,
                    analysis TEXT,
                    analyzed_at TEXT,
                    UNIQUE (external_id, origin)
                );

                CREATE INDEX IF NOT EXISTS idx_documents_created ON documents(created_at);
                CREATE INDEX IF NOT EXISTS idx_documents_analyzed ON documents(analyzed_at);
            ''')

    @contextmanager
    def _get_conn(self):
        """Get database connection."""
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # WRITES
    # =========================================================================

    def exists(self, external_id: str) -> bool:
        with self._get_conn() as conn:
            row = conn.execute(
                'SELECT 1 FROM documents WHERE external_id = ?', (external_id,)
            ).fetchone()
        return row is not None

    def insert(self, document: Document) -> StoreOutcome:
        """Insert a document. Inserting a known external_id is a no-op."""
        record = document.to_record()
        try:
            with self._get_conn() as conn:
                cursor = conn.execute('''
                    INSERT OR IGNORE INTO documents
                    (external_id, origin, title, body, author, score, comment_count,
                     url, created_at, ingested_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    record['external_id'],
                    record['origin'],
                    record['title'],
                    record['body'],
                    record['author'],
                    record['score'],
                    record['comment_count'],
                    record['url'],
                    record['created_at'],
                    record['ingested_at'],
                ))
                created = cursor.rowcount == 1
        except sqlite3.Error as e:
            return StoreOutcome.failed(f"Insert failed: {e}")
        return StoreOutcome.ok(created=created)

    def update_analysis(self, external_id: str, analysis: 'AnalysisResult') -> StoreOutcome:
        """Attach the analysis to a pending document."""
        try:
            payload = json.dumps(analysis.to_dict())
            with self._get_conn() as conn:
                cursor = conn.execute('''
                    UPDATE documents SET analysis = ?, analyzed_at = ?
                    WHERE external_id = ? AND analysis IS NULL
                ''', (payload, utcnow().isoformat(), external_id))
                if cursor.rowcount == 1:
                    return StoreOutcome.ok()
                known = conn.execute(
                    'SELECT 1 FROM documents WHERE external_id = ?', (external_id,)
                ).fetchone()
        except (sqlite3.Error, TypeError, ValueError) as e:
            return StoreOutcome.failed(f"Update failed: {e}")

        if known is None:
            return StoreOutcome.failed(f"Document {external_id} not found")
        return StoreOutcome.failed(f"Document {external_id} already analyzed")

    def clear(self) -> int:
        """Delete every document. Returns the number removed."""
        with self._get_conn() as conn:
            cursor = conn.execute('DELETE FROM documents')
            return cursor.rowcount

    # =========================================================================
    # QUERIES
    # =========================================================================

    def query_pending(self) -> List[Document]:
        with self._get_conn() as conn:
            rows = conn.execute('''
                SELECT * FROM documents WHERE analysis IS NULL
                ORDER BY created_at DESC, id ASC
            ''').fetchall()
        return [Document.from_record(dict(row)) for row in rows]

    def query_completed(self) -> List[StoredDocument]:
        with self._get_conn() as conn:
            rows = conn.execute('''
                SELECT * FROM documents WHERE analysis IS NOT NULL
                ORDER BY created_at DESC, id ASC
            ''').fetchall()
        return [self._row_to_stored(dict(row)) for row in rows]

    def stats(self) -> StoreStats:
        with self._get_conn() as conn:
            total = conn.execute('SELECT COUNT(*) FROM documents').fetchone()[0]
            analyzed = conn.execute(
                'SELECT COUNT(*) FROM documents WHERE analysis IS NOT NULL'
            ).fetchone()[0]
            last = conn.execute(
                'SELECT MAX(analyzed_at) FROM documents WHERE analysis IS NOT NULL'
            ).fetchone()[0]
        return StoreStats(
            total=total,
            analyzed=analyzed,
            last_analysis_at=datetime.fromisoformat(last) if last else None,
        )

    def _row_to_stored(self, row: Dict[str, Any]) -> StoredDocument:
        analyzed_at = row.get('analyzed_at')
        return StoredDocument(
            document=Document.from_record(row),
            analysis=json.loads(row['analysis']) if row.get('analysis') else None,
            analyzed_at=datetime.fromisoformat(analyzed_at) if analyzed_at else None,
        )
