"""
Persistence for the mirror.

Every write is a single ``INSERT ... ON CONFLICT (composite key) DO UPDATE``
statement so webhook deliveries and poll passes racing on the same row never
lose updates. The one read-modify-write, assigning a repository color, runs
under a per-installation lock.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import and_, case, delete, func, or_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from orgmirror.config.db import get_engine
from orgmirror.core.exceptions import PersistenceError
from orgmirror.models import (
    Installation,
    MirroredPullRequest,
    MirroredRepository,
    OrgMember,
    PullRequestAnalysisRecord,
    PullRequestStatus,
    RepositoryBranches,
)
from orgmirror.models.base_model import parse_github_timestamp, utcnow
from orgmirror.utils.logger import logger
from orgmirror.utils.repo_colors import next_repo_color

_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}

INSTALLATION_TABLES = [
    PullRequestAnalysisRecord,
    MirroredPullRequest,
    RepositoryBranches,
    MirroredRepository,
    OrgMember,
    Installation,
]


def _owner_login(owner: Any) -> Optional[str]:
    if isinstance(owner, dict):
        return owner.get("login")
    return owner


def repository_values(installation_id: int, repo: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "installation_id": installation_id,
        "name": repo["name"],
        "repo_id": repo.get("id"),
        "full_name": repo.get("full_name") or repo["name"],
        "owner": _owner_login(repo.get("owner")),
        "primary_language": repo.get("primary_language") or repo.get("language"),
        "languages": repo.get("languages") or [],
        "remote_updated_at": parse_github_timestamp(repo.get("updated_at")),
        "payload": repo,
    }


def pull_request_status(pr: Dict[str, Any], action: Optional[str] = None) -> str:
    if action == "closed" or pr.get("state") == "closed":
        return PullRequestStatus.CLOSED.value
    if pr.get("draft"):
        return PullRequestStatus.DRAFT.value
    return PullRequestStatus.OPEN.value


def pull_request_values(
    installation_id: int, repo_name: str, pr: Dict[str, Any], status: str
) -> Dict[str, Any]:
    return {
        "installation_id": installation_id,
        "repo_name": repo_name,
        "number": pr["number"],
        "title": pr.get("title") or "",
        "body": pr.get("body"),
        "state": pr.get("state"),
        "status": status,
        "draft": bool(pr.get("draft")),
        "changed_files": pr.get("changed_files"),
        "requested_reviewers": pr.get("requested_reviewers") or [],
        "remote_updated_at": parse_github_timestamp(pr.get("updated_at")),
        "payload": {k: v for k, v in pr.items() if k != "changed_files"},
    }


class MirrorStore:
    # Shared by every store instance so webhook and poll paths serialize.
    _installation_locks: Dict[int, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, engine=None):
        self._engine = engine

    @property
    def engine(self):
        return self._engine or get_engine()

    @classmethod
    def _lock_for(cls, installation_id: int) -> threading.Lock:
        with cls._locks_guard:
            return cls._installation_locks.setdefault(installation_id, threading.Lock())

    @contextmanager
    def _writing(self) -> Iterator[Any]:
        try:
            with self.engine.begin() as connection:
                yield connection
        except SQLAlchemyError as e:
            logger.error(f"Persistence failure: {e}")
            raise PersistenceError(str(e)) from e

    def _session(self) -> Session:
        return Session(self.engine)

    def _upsert_statement(self, model, values: Dict[str, Any], set_: Dict[str, Any], where=None):
        insert_fn = _INSERTS.get(self.engine.dialect.name)
        if insert_fn is None:
            raise PersistenceError(
                f"Upserts are not supported on dialect '{self.engine.dialect.name}'"
            )
        now = utcnow()
        stmt = insert_fn(model.__table__).values(
            **values, created_at=now, updated_at=now
        )
        resolved = {
            column: (value(stmt.excluded) if callable(value) else value)
            for column, value in set_.items()
        }
        resolved["updated_at"] = now
        return stmt.on_conflict_do_update(
            index_elements=model.key_columns(),
            set_=resolved,
            where=where(stmt.excluded) if callable(where) else where,
        )

    @staticmethod
    def _excluded(columns: List[str]) -> Dict[str, Any]:
        return {column: (lambda ex, c=column: ex[c]) for column in columns}

    @staticmethod
    def _newer_or_equal(table):
        def _where(excluded):
            return or_(
                table.c.remote_updated_at.is_(None),
                excluded.remote_updated_at.is_(None),
                table.c.remote_updated_at <= excluded.remote_updated_at,
            )

        return _where

    # Installations

    def save_installation(
        self, installation_id: int, owner_login: str, payload: Dict[str, Any]
    ) -> None:
        stmt = self._upsert_statement(
            Installation,
            {"installation_id": installation_id, "owner_login": owner_login, "payload": payload},
            self._excluded(["owner_login", "payload"]),
        )
        with self._writing() as connection:
            connection.execute(stmt)
        logger.info(f"Installation {installation_id} ({owner_login}) saved.")

    def get_installation(self, installation_id: int) -> Optional[Installation]:
        with self._session() as session:
            return session.get(Installation, installation_id)

    def get_active_installation(
        self, preferred_id: Optional[int] = None
    ) -> Optional[Installation]:
        if preferred_id is not None:
            return self.get_installation(preferred_id)
        with self._session() as session:
            return session.exec(
                select(Installation).order_by(Installation.created_at)
            ).first()

    def purge_installation(self, installation_id: int) -> None:
        """Delete every row that belongs to one installation."""
        with self._writing() as connection:
            for model in INSTALLATION_TABLES:
                connection.execute(
                    delete(model.__table__).where(
                        model.__table__.c.installation_id == installation_id
                    )
                )
        logger.info(f"Installation {installation_id} purged.")

    # Repositories

    def _repository_statement(self, values: Dict[str, Any], color: Optional[str]):
        table = MirroredRepository.__table__
        set_ = self._excluded(
            ["repo_id", "full_name", "owner", "primary_language", "languages",
             "remote_updated_at", "payload"]
        )
        # An existing color is never replaced.
        set_["color"] = lambda ex: func.coalesce(table.c.color, ex.color)
        return self._upsert_statement(
            MirroredRepository,
            {**values, "color": color},
            set_,
            where=self._newer_or_equal(table),
        )

    def upsert_repository(self, installation_id: int, repo: Dict[str, Any]) -> str:
        """Upsert one repository, assigning a color on first insert.

        Returns:
            The repository's color after the write.
        """
        values = repository_values(installation_id, repo)
        with self._lock_for(installation_id):
            existing = {r.name: r for r in self.list_repositories(installation_id)}
            current = existing.get(values["name"])
            color = current.color if current and current.color else None
            if color is None:
                color = next_repo_color(
                    (r.color for r in existing.values()), len(existing)
                )
            with self._writing() as connection:
                connection.execute(self._repository_statement(values, color))
        return color

    def replace_repositories(self, installation_id: int, repos: List[Dict[str, Any]]) -> None:
        """Overwrite the installation's repository set with ``repos``."""
        names = [repo["name"] for repo in repos]
        table = MirroredRepository.__table__
        with self._lock_for(installation_id):
            kept = {
                r.name: r.color
                for r in self.list_repositories(installation_id)
                if r.name in names and r.color
            }
            colors: Dict[str, str] = dict(kept)
            for name in names:
                if name not in colors:
                    colors[name] = next_repo_color(colors.values(), len(colors))

            with self._writing() as connection:
                connection.execute(
                    delete(table).where(
                        and_(table.c.installation_id == installation_id, table.c.name.not_in(names))
                    )
                )
                for repo in repos:
                    values = repository_values(installation_id, repo)
                    connection.execute(
                        self._repository_statement(values, colors[values["name"]])
                    )
        logger.info(f"Stored {len(repos)} repositories for installation {installation_id}.")

    def delete_repository(self, installation_id: int, name: str) -> None:
        """Remove a repository and its branches; its pull requests become ``deleted``."""
        repos = MirroredRepository.__table__
        branches = RepositoryBranches.__table__
        prs = MirroredPullRequest.__table__
        with self._writing() as connection:
            connection.execute(
                delete(repos).where(
                    and_(repos.c.installation_id == installation_id, repos.c.name == name)
                )
            )
            connection.execute(
                delete(branches).where(
                    and_(
                        branches.c.installation_id == installation_id,
                        branches.c.repo_name == name,
                    )
                )
            )
            connection.execute(
                update(prs)
                .where(and_(prs.c.installation_id == installation_id, prs.c.repo_name == name))
                .values(status=PullRequestStatus.DELETED.value, updated_at=utcnow())
            )
        logger.info(f"Repository {name} removed from installation {installation_id}.")

    def list_repositories(self, installation_id: int) -> List[MirroredRepository]:
        with self._session() as session:
            return list(
                session.exec(
                    select(MirroredRepository)
                    .where(MirroredRepository.installation_id == installation_id)
                    .order_by(MirroredRepository.created_at, MirroredRepository.name)
                ).all()
            )

    # Branches

    def _branches_statement(
        self,
        installation_id: int,
        repo_name: str,
        branches: List[str],
        full_name: Optional[str],
        repo_id: Optional[int],
    ):
        return self._upsert_statement(
            RepositoryBranches,
            {
                "installation_id": installation_id,
                "repo_name": repo_name,
                "full_name": full_name,
                "repo_id": repo_id,
                "branches": branches,
            },
            self._excluded(["full_name", "repo_id", "branches"]),
        )

    def replace_branches(
        self,
        installation_id: int,
        repo_name: str,
        branches: List[str],
        full_name: Optional[str] = None,
        repo_id: Optional[int] = None,
    ) -> None:
        """Replace one repository's branch list without touching the others."""
        stmt = self._branches_statement(installation_id, repo_name, branches, full_name, repo_id)
        with self._writing() as connection:
            connection.execute(stmt)

    def replace_all_branches(
        self,
        installation_id: int,
        entries: List[Dict[str, Any]],
        repo_names: Optional[List[str]] = None,
    ) -> None:
        """Overwrite the installation's branch sets with ``entries``.

        Rows of repositories named in ``repo_names`` but missing from
        ``entries`` are left as they are; every other row is dropped.
        """
        table = RepositoryBranches.__table__
        keep = set(repo_names or []) | {entry["repo"] for entry in entries}
        with self._writing() as connection:
            connection.execute(
                delete(table).where(
                    and_(
                        table.c.installation_id == installation_id,
                        table.c.repo_name.not_in(keep),
                    )
                )
            )
            for entry in entries:
                connection.execute(
                    self._branches_statement(
                        installation_id,
                        entry["repo"],
                        entry["branches"],
                        entry.get("full_name"),
                        entry.get("repo_id"),
                    )
                )

    def list_branches(self, installation_id: int) -> List[RepositoryBranches]:
        with self._session() as session:
            return list(
                session.exec(
                    select(RepositoryBranches)
                    .where(RepositoryBranches.installation_id == installation_id)
                    .order_by(RepositoryBranches.repo_name)
                ).all()
            )

    # Pull requests

    def _pull_request_statement(self, values: Dict[str, Any]):
        table = MirroredPullRequest.__table__
        columns = ["title", "body", "state", "draft", "requested_reviewers",
                   "remote_updated_at", "payload"]
        if values.get("changed_files") is None:
            values = {**values, "changed_files": []}
        else:
            columns.append("changed_files")
        set_ = self._excluded(columns)
        set_["status"] = lambda ex: case(
            (table.c.status == PullRequestStatus.DELETED.value, table.c.status),
            else_=ex.status,
        )
        return self._upsert_statement(
            MirroredPullRequest, values, set_, where=self._newer_or_equal(table)
        )

    def upsert_pull_request(
        self,
        installation_id: int,
        repo_name: str,
        pr: Dict[str, Any],
        status: Optional[str] = None,
    ) -> None:
        """Upsert one pull request.

        A stale snapshot (older ``updated_at`` than the stored row) is ignored
        and a stored ``deleted`` status is kept. ``changed_files`` of None
        leaves the stored file list untouched.
        """
        values = pull_request_values(
            installation_id, repo_name, pr, status or pull_request_status(pr)
        )
        with self._writing() as connection:
            connection.execute(self._pull_request_statement(values))

    def upsert_pull_requests(
        self, installation_id: int, repo_name: str, prs: List[Dict[str, Any]]
    ) -> int:
        """Bulk upsert; a failing item is logged and does not stop its siblings."""
        stored = 0
        for pr in prs:
            try:
                self.upsert_pull_request(installation_id, repo_name, pr)
                stored += 1
            except PersistenceError as e:
                logger.error(f"Failed to store PR #{pr.get('number')} of {repo_name}: {e}")
        return stored

    def replace_pull_requests(
        self, installation_id: int, grouped: Dict[str, List[Dict[str, Any]]]
    ) -> None:
        """Hard replace of the installation's pull requests (explicit resync only)."""
        table = MirroredPullRequest.__table__
        with self._writing() as connection:
            connection.execute(delete(table).where(table.c.installation_id == installation_id))
            for repo_name, prs in grouped.items():
                for pr in prs:
                    values = pull_request_values(
                        installation_id, repo_name, pr, pull_request_status(pr)
                    )
                    connection.execute(self._pull_request_statement(values))

    def get_pull_request(
        self, installation_id: int, repo_name: str, number: int
    ) -> Optional[MirroredPullRequest]:
        with self._session() as session:
            return session.get(MirroredPullRequest, (installation_id, repo_name, number))

    def list_pull_requests(
        self,
        installation_id: int,
        repo_name: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[MirroredPullRequest]:
        statement = select(MirroredPullRequest).where(
            MirroredPullRequest.installation_id == installation_id
        )
        if repo_name is not None:
            statement = statement.where(MirroredPullRequest.repo_name == repo_name)
        if status is not None:
            statement = statement.where(MirroredPullRequest.status == status)
        statement = statement.order_by(MirroredPullRequest.repo_name, MirroredPullRequest.number)
        with self._session() as session:
            return list(session.exec(statement).all())

    # Analyses

    def save_analysis(
        self, installation_id: int, repo_name: str, pr_number: int, analysis: Dict[str, Any]
    ) -> None:
        stmt = self._upsert_statement(
            PullRequestAnalysisRecord,
            {
                "installation_id": installation_id,
                "repo_name": repo_name,
                "pr_number": pr_number,
                "analysis": analysis,
            },
            self._excluded(["analysis"]),
        )
        with self._writing() as connection:
            connection.execute(stmt)
        logger.info(f"Analysis stored for {repo_name}#{pr_number}.")

    def list_analyses(self, installation_id: int) -> List[PullRequestAnalysisRecord]:
        with self._session() as session:
            return list(
                session.exec(
                    select(PullRequestAnalysisRecord).where(
                        PullRequestAnalysisRecord.installation_id == installation_id
                    )
                ).all()
            )

    # Members

    def upsert_members(self, installation_id: int, members: List[Dict[str, Any]]) -> int:
        """Upsert members; a known email or name is never replaced by null."""
        table = OrgMember.__table__
        stored = 0
        for member in members:
            set_ = self._excluded(["member_id", "payload"])
            set_["email"] = lambda ex: func.coalesce(ex.email, table.c.email)
            set_["name"] = lambda ex: func.coalesce(ex.name, table.c.name)
            stmt = self._upsert_statement(
                OrgMember,
                {
                    "installation_id": installation_id,
                    "login": member["login"],
                    "member_id": member.get("id"),
                    "email": member.get("email"),
                    "name": member.get("name"),
                    "payload": member,
                },
                set_,
            )
            try:
                with self._writing() as connection:
                    connection.execute(stmt)
                stored += 1
            except PersistenceError as e:
                logger.error(f"Failed to store member {member.get('login')}: {e}")
        return stored

    def list_members(self, installation_id: int) -> List[OrgMember]:
        with self._session() as session:
            return list(
                session.exec(
                    select(OrgMember)
                    .where(OrgMember.installation_id == installation_id)
                    .order_by(OrgMember.login)
                ).all()
            )
