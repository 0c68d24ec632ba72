"""
Document store for project aggregates: SQLAlchemy-backed and in-memory.

Each project, including its versions and bundle updates, is one JSON document.
Writes replace the whole document; there is no isolation between concurrent
writers to the same project (last write wins).
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Column, Float, String, create_engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from appdist.models import Project

logger = logging.getLogger(__name__)


class DbClient(Protocol):
    """Interface for project document access."""

    def get_project(self, project_id: str) -> Optional[Project]:
        ...

    def list_projects(self) -> list[Project]:
        ...

    def save_project(self, project: Project) -> None:
        ...

    def delete_project(self, project_id: str) -> bool:
        ...

    def ping(self) -> bool:
        ...


class InMemoryDbClient:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.documents: Dict[str, dict] = {}

    def get_project(self, project_id: str) -> Optional[Project]:
        document = self.documents.get(project_id)
        if document is None:
            return None
        return Project.from_dict(copy.deepcopy(document))

    def list_projects(self) -> list[Project]:
        projects = [Project.from_dict(copy.deepcopy(d)) for d in self.documents.values()]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def save_project(self, project: Project) -> None:
        self.documents[project.id] = project.as_dict()

    def delete_project(self, project_id: str) -> bool:
        return self.documents.pop(project_id, None) is not None

    def ping(self) -> bool:
        return True

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.documents.clear()


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get_project(self, project_id: str) -> Optional[Project]:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                return None
            return Project.from_dict(row.document)

    def list_projects(self) -> list[Project]:
        with self.Session() as session:
            rows = session.execute(
                select(ProjectRow).order_by(ProjectRow.created_at.desc())
            ).scalars()
            return [Project.from_dict(row.document) for row in rows]

    def save_project(self, project: Project) -> None:
        document = project.as_dict()
        with self.Session() as session:
            row = session.get(ProjectRow, project.id)
            if row:
                row.document = document
            else:
                session.add(
                    ProjectRow(
                        project_id=project.id,
                        created_at=project.created_at,
                        document=document,
                    )
                )
            session.commit()

    def delete_project(self, project_id: str) -> bool:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def ping(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False


Base = declarative_base()


class ProjectRow(Base):
    __tablename__ = "projects"

    project_id = Column(String, primary_key=True)
    created_at = Column(Float, nullable=False, index=True)
    document = Column(JSON, nullable=False)
