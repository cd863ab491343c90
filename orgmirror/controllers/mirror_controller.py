from collections import defaultdict
from typing import Any, Dict, List, Optional

from orgmirror.config import settings
from orgmirror.controllers.base_controller import BaseController
from orgmirror.core.exceptions import AuthError, NotFound, OrgMirrorError
from orgmirror.models import MirroredPullRequest
from orgmirror.services import runtime
from orgmirror.services.analyzer import static_checks
from orgmirror.services.reconciler import RESYNC_RESOURCES

STRIPPED_KEYS = ("permissions", "_links")


def strip_links(value: Any) -> Any:
    """Drop API link fields (``url``, ``*_url``) and permissions, recursively."""
    if isinstance(value, dict):
        return {
            key: strip_links(item)
            for key, item in value.items()
            if key != "url" and not key.endswith("_url") and key not in STRIPPED_KEYS
        }
    if isinstance(value, list):
        return [strip_links(item) for item in value]
    return value


def clean_pull_request(
    row: MirroredPullRequest, analysis: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    payload = dict(row.payload or {})
    head = payload.pop("head", None) or {}
    payload.pop("base", None)
    cleaned = strip_links(payload)
    cleaned.update(
        {
            "number": row.number,
            "title": row.title,
            "body": row.body,
            "status": row.status,
            "draft": row.draft,
            "head": {
                "repo": (head.get("repo") or {}).get("name"),
                "ref": head.get("ref"),
            },
            "changed_files": row.changed_files or [],
        }
    )
    if analysis is None:
        analysis = static_checks(
            {
                "title": row.title,
                "body": row.body,
                "changed_files": row.changed_files,
                "requested_reviewers": row.requested_reviewers,
            }
        )
    cleaned["analysis"] = analysis
    return cleaned


class MirrorController(BaseController):
    @classmethod
    def index(cls):
        """The cleaned, joined mirror of the active installation."""
        try:
            store = runtime.mirror_store()
            installation = store.get_active_installation(cls._preferred_installation())
            if installation is None:
                return cls().failure("No installation has been mirrored yet", status_code=404)
            return cls().success(cls.build_mirror(installation.installation_id))
        except OrgMirrorError as e:
            return cls().handle_error(e, "An error occurred while reading the mirror")

    @staticmethod
    def _preferred_installation():
        return int(settings.GITHUB_INSTALLATION_ID) if settings.GITHUB_INSTALLATION_ID else None

    @staticmethod
    def build_mirror(installation_id: int) -> Dict[str, Any]:
        store = runtime.mirror_store()
        analyses = {
            (record.repo_name, record.pr_number): record.analysis
            for record in store.list_analyses(installation_id)
        }

        pull_requests: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for row in store.list_pull_requests(installation_id):
            pull_requests[row.repo_name].append(
                clean_pull_request(row, analyses.get((row.repo_name, row.number)))
            )

        repositories = []
        for repo in store.list_repositories(installation_id):
            cleaned = strip_links(repo.payload or {})
            cleaned.update(
                {
                    "name": repo.name,
                    "full_name": repo.full_name,
                    "owner": repo.owner,
                    "color": repo.color,
                    "primary_language": repo.primary_language,
                    "languages": repo.languages or [],
                }
            )
            repositories.append(cleaned)

        members = []
        for member in store.list_members(installation_id):
            cleaned = strip_links(member.payload or {})
            cleaned.update({"login": member.login, "email": member.email, "name": member.name})
            members.append(cleaned)

        return {
            "installation_id": installation_id,
            "repositories": repositories,
            "branches": [
                {"repo": b.repo_name, "full_name": b.full_name, "branches": b.branches or []}
                for b in store.list_branches(installation_id)
            ],
            "pull_requests": dict(pull_requests),
            "members": members,
        }

    @classmethod
    def resync(cls, resource: str):
        if resource not in RESYNC_RESOURCES:
            return cls().failure(
                f"Unknown resource '{resource}'",
                message=f"Resource must be one of {list(RESYNC_RESOURCES)}",
                status_code=400,
            )
        try:
            ctx = runtime.active_context()
            count = runtime.reconciler().force_resync(ctx, resource)
        except NotFound as e:
            return cls().failure(str(e), message="No installation to resync", status_code=404)
        except AuthError as e:
            return cls().failure(str(e), message="GitHub authentication failed", status_code=502)
        except OrgMirrorError as e:
            return cls().handle_error(e, f"Resync of {resource} failed")
        return cls().success({"resource": resource, "count": count}, message="Resync complete")
