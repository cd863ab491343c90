import threading
import time
from typing import Any, Callable, Dict, List, Optional

from orgmirror.config import settings
from orgmirror.core.exceptions import (
    GitHubAPIError,
    GitHubTimeout,
    NotFound,
    RateLimited,
)
from orgmirror.integrations.github.github import InstallationContext
from orgmirror.models import PullRequestStatus
from orgmirror.models.analysis import PullRequestAnalysis
from orgmirror.services.analyzer import PullRequestAnalyzer, build_pr_payload
from orgmirror.services.mirror_store import MirrorStore, pull_request_status
from orgmirror.utils.batching import run_in_batches
from orgmirror.utils.logger import logger
from orgmirror.utils.sync_notifier import notify_sync

# Remote failures that only concern one repository or pull request.
FETCH_ERRORS = (NotFound, GitHubTimeout, GitHubAPIError, RateLimited)

ANALYZE_ACTIONS = ("opened", "edited", "synchronize")
MEMBER_EVENTS = ("member", "membership", "organization")
BRANCH_EVENTS = ("create", "delete", "push")
RESYNC_RESOURCES = ("repositories", "branches", "pull_requests", "members")


class Reconciler:
    """
    Computes the delta between GitHub and the local mirror and persists it.

    All writes go through ``MirrorStore`` upserts, so the webhook path and the
    poll path may call into the same reconciler concurrently. A failure that
    only concerns one repository or pull request is logged and skipped;
    ``AuthError`` and ``PersistenceError`` propagate and end the pass.
    """

    def __init__(
        self,
        store: MirrorStore,
        analyzer: PullRequestAnalyzer,
        review_comments: bool = settings.ENABLE_PR_REVIEW_COMMENT,
        rewrite_description: bool = settings.ENABLE_PR_DESCRIPTION_REWRITE,
        batch_size: int = settings.FETCH_BATCH_SIZE,
        batch_delay: float = settings.FETCH_BATCH_DELAY,
        settle_seconds: float = settings.INSTALLATION_SETTLE_SECONDS,
        notifier: Callable[[str, Dict[str, Any]], bool] = notify_sync,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.analyzer = analyzer
        self.review_comments = review_comments
        self.rewrite_description = rewrite_description
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.settle_seconds = settle_seconds
        self.notifier = notifier
        self.sleep = sleep

    def _batched(self, items, fn, stop_when=None):
        return run_in_batches(
            items,
            fn,
            batch_size=self.batch_size,
            delay=self.batch_delay,
            stop_when=stop_when,
            sleep=self.sleep,
        )

    # Repositories and branches

    def sync_repository(self, ctx: InstallationContext, repo_name: str) -> Optional[str]:
        """Upsert one repository and replace its branch list.

        Returns:
            The repository's color, or None when it could not be fetched.
        """
        try:
            repo = ctx.github.get_repository(repo_name)
            if repo is None:
                logger.warning(f"Repository {repo_name} not found. Skipping.")
                return None
            branches = ctx.github.list_branches(repo_name)
        except FETCH_ERRORS as e:
            logger.error(f"Failed to fetch repository {repo_name}: {e}")
            return None

        color = self.store.upsert_repository(ctx.installation_id, repo)
        self.store.replace_branches(
            ctx.installation_id,
            repo_name,
            branches,
            full_name=repo.get("full_name"),
            repo_id=repo.get("id"),
        )
        logger.info(f"Repository {repo_name} synced with {len(branches)} branches.")
        return color

    def sync_branches(self, ctx: InstallationContext, repo_name: str) -> bool:
        try:
            branches = ctx.github.list_branches(repo_name)
        except FETCH_ERRORS as e:
            logger.error(f"Failed to fetch branches of {repo_name}: {e}")
            return False
        self.store.replace_branches(ctx.installation_id, repo_name, branches)
        return True

    def remove_repository(self, ctx: InstallationContext, repo_name: str) -> None:
        self.store.delete_repository(ctx.installation_id, repo_name)

    def _fetch_branch_entries(
        self, ctx: InstallationContext, repos: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        def _fetch(repo: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "repo": repo["name"],
                "full_name": repo.get("full_name"),
                "repo_id": repo.get("id"),
                "branches": ctx.github.list_branches(repo["name"]),
            }

        return [entry for entry in self._batched(repos, _fetch) if entry is not None]

    def sync_all_repositories(self, ctx: InstallationContext) -> int:
        """Replace the installation's repositories and branch sets."""
        repos = ctx.github.list_repositories()
        self.store.replace_repositories(ctx.installation_id, repos)
        self.store.replace_all_branches(
            ctx.installation_id,
            self._fetch_branch_entries(ctx, repos),
            [repo["name"] for repo in repos],
        )
        logger.info(
            f"Synced {len(repos)} repositories for installation {ctx.installation_id}."
        )
        return len(repos)

    def sync_all_branches(self, ctx: InstallationContext) -> int:
        repos = [
            {"name": r.name, "full_name": r.full_name, "id": r.repo_id}
            for r in self.store.list_repositories(ctx.installation_id)
        ]
        entries = self._fetch_branch_entries(ctx, repos)
        self.store.replace_all_branches(
            ctx.installation_id, entries, [repo["name"] for repo in repos]
        )
        return len(entries)

    # Pull requests

    def analyze(
        self, ctx: InstallationContext, repo_name: str, pr: Dict[str, Any]
    ) -> Optional[PullRequestAnalysis]:
        """Analyze a pull request and persist the result."""
        try:
            template = ctx.github.get_pull_request_template(repo_name)
        except FETCH_ERRORS as e:
            logger.warning(f"Could not fetch the PR template of {repo_name}: {e}")
            template = None

        analysis = self.analyzer.analyze(build_pr_payload(pr), template)
        if analysis is None:
            return None
        self.store.save_analysis(
            ctx.installation_id, repo_name, pr["number"], analysis.to_record()
        )
        return analysis

    def publish_review(
        self,
        ctx: InstallationContext,
        repo_name: str,
        number: int,
        analysis: PullRequestAnalysis,
    ) -> None:
        comments = [c.model_dump() for c in analysis.merged_review_comments()]
        ctx.github.submit_review(
            repo_name,
            number,
            analysis.review_event().value,
            analysis.review_body(),
            comments,
        )

    def publish_description(
        self,
        ctx: InstallationContext,
        repo_name: str,
        number: int,
        analysis: PullRequestAnalysis,
    ) -> bool:
        if not analysis.summary:
            logger.info(f"No summary generated for {repo_name}#{number}.")
            return False
        ctx.github.update_pull_request_body(repo_name, number, analysis.summary)
        logger.info(f"Description of {repo_name}#{number} rewritten.")
        return True

    def sync_pull_request(
        self,
        ctx: InstallationContext,
        repo_name: str,
        number: int,
        action: Optional[str] = None,
    ) -> Optional[PullRequestAnalysis]:
        """Mirror one pull request and, for content-changing actions, analyze it."""
        try:
            pr = ctx.github.get_pull_request(repo_name, number)
        except FETCH_ERRORS as e:
            logger.error(f"Failed to fetch PR #{number} of {repo_name}: {e}")
            return None
        if pr is None:
            logger.warning(f"PR #{number} of {repo_name} not found. Skipping.")
            return None

        status = pull_request_status(pr, action)
        self.store.upsert_pull_request(ctx.installation_id, repo_name, pr, status)

        if status == PullRequestStatus.DRAFT.value:
            logger.info(f"Skipping analysis for draft PR #{number} of {repo_name}")
            return None
        if action not in ANALYZE_ACTIONS:
            return None

        analysis = self.analyze(ctx, repo_name, pr)
        if analysis is None:
            return None

        try:
            if self.review_comments:
                self.publish_review(ctx, repo_name, number, analysis)
            if self.rewrite_description:
                self.publish_description(ctx, repo_name, number, analysis)
        except FETCH_ERRORS as e:
            logger.error(f"Failed to publish analysis for {repo_name}#{number}: {e}")
        return analysis

    def _fetch_pull_requests(
        self, ctx: InstallationContext, repo_name: str
    ) -> Optional[List[Dict[str, Any]]]:
        try:
            prs = ctx.github.list_pull_requests(repo_name)
        except FETCH_ERRORS as e:
            logger.error(f"Failed to list pull requests of {repo_name}: {e}")
            return None

        # Closed PRs keep whatever file list is already stored.
        open_prs = [pr for pr in prs if pr.get("state") != "closed"]

        def _with_files(pr: Dict[str, Any]) -> Dict[str, Any]:
            return {
                **pr,
                "changed_files": ctx.github.list_pull_request_files(repo_name, pr["number"]),
            }

        enriched = {
            pr["number"]: pr
            for pr in self._batched(open_prs, _with_files)
            if pr is not None
        }
        return [enriched.get(pr["number"], pr) for pr in prs]

    def _repository_names(
        self, ctx: InstallationContext, repo_names: Optional[List[str]] = None
    ) -> List[str]:
        if repo_names:
            return list(repo_names)
        return [r.name for r in self.store.list_repositories(ctx.installation_id)]

    def sync_all_pull_requests(
        self, ctx: InstallationContext, repo_names: Optional[List[str]] = None
    ) -> int:
        stored = 0
        for repo_name in self._repository_names(ctx, repo_names):
            prs = self._fetch_pull_requests(ctx, repo_name)
            if prs is None:
                continue
            stored += self.store.upsert_pull_requests(ctx.installation_id, repo_name, prs)
        logger.info(f"Synced {stored} pull requests for installation {ctx.installation_id}.")
        return stored

    def deferred_pull_request_sync(self, ctx: InstallationContext) -> int:
        """Installation follow-up: let GitHub settle, then mirror every PR."""
        if self.settle_seconds:
            self.sleep(self.settle_seconds)
        stored = self.sync_all_pull_requests(ctx)
        self.notifier("github", {"installation_id": ctx.installation_id, "pull_requests": stored})
        return stored

    def replace_all_pull_requests(self, ctx: InstallationContext) -> int:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for repo_name in self._repository_names(ctx):
            prs = self._fetch_pull_requests(ctx, repo_name)
            if prs is not None:
                grouped[repo_name] = prs
        self.store.replace_pull_requests(ctx.installation_id, grouped)
        return sum(len(prs) for prs in grouped.values())

    # Members

    def sync_members(self, ctx: InstallationContext, enrich: bool = True) -> int:
        """Mirror org members, filling missing email/name from commit authorship.

        Repositories are scanned in batches until every member is resolved or
        there are no repositories left. Known values are never erased.
        """
        members = [dict(m) for m in ctx.github.list_members()]
        known = {
            m.login: m
            for m in self.store.list_members(ctx.installation_id)
            if m.email and m.name
        }
        unresolved = {
            m["login"]: m
            for m in members
            if m.get("login") not in known and not (m.get("email") and m.get("name"))
        }
        lock = threading.Lock()

        def _scan(repo_name: str) -> None:
            for commit in ctx.github.list_recent_commits(repo_name):
                login = (commit.get("author") or {}).get("login")
                author = (commit.get("commit") or {}).get("author") or {}
                with lock:
                    member = unresolved.get(login)
                    if member is None:
                        continue
                    member["email"] = member.get("email") or author.get("email")
                    member["name"] = member.get("name") or author.get("name")
                    if member["email"] and member["name"]:
                        del unresolved[login]

        if enrich and unresolved:
            self._batched(
                self._repository_names(ctx), _scan, stop_when=lambda: not unresolved
            )
            if unresolved:
                logger.info(f"{len(unresolved)} members left without email or name.")

        stored = self.store.upsert_members(ctx.installation_id, members)
        logger.info(f"Synced {stored} members for installation {ctx.installation_id}.")
        return stored

    # Entry points

    def handle_event(self, ctx: InstallationContext, event) -> None:
        """Route a webhook event to the matching sync operation."""
        name, action = event.name, event.action

        if name == "repository":
            if action == "deleted":
                self.remove_repository(ctx, event.repo_name)
                return
            if action == "renamed" and event.previous_repo_name:
                self.remove_repository(ctx, event.previous_repo_name)
            self.sync_repository(ctx, event.repo_name)
        elif name == "installation_repositories":
            for repo in event.payload.get("repositories_removed") or []:
                self.remove_repository(ctx, repo["name"])
            for repo in event.payload.get("repositories_added") or []:
                self.sync_repository(ctx, repo["name"])
        elif name in BRANCH_EVENTS:
            if event.repo_name:
                self.sync_branches(ctx, event.repo_name)
        elif name == "pull_request":
            self.sync_pull_request(ctx, event.repo_name, event.pr_number, action)
        elif name in MEMBER_EVENTS:
            self.sync_members(ctx)
        else:
            logger.info(f"Ignoring event '{name}' (action: {action}).")

    def sync_installation(self, ctx: InstallationContext) -> None:
        """Immediate part of onboarding: repositories, branches and members."""
        repos = self.sync_all_repositories(ctx)
        members = self.sync_members(ctx)
        self.notifier(
            "github",
            {"installation_id": ctx.installation_id, "repositories": repos, "members": members},
        )

    def force_resync(self, ctx: InstallationContext, resource: str) -> int:
        """Explicitly rebuild one resource of the installation's mirror.

        ``pull_requests`` replaces the stored rows instead of upserting them.
        """
        if resource == "repositories":
            return self.sync_all_repositories(ctx)
        if resource == "branches":
            return self.sync_all_branches(ctx)
        if resource == "pull_requests":
            return self.replace_all_pull_requests(ctx)
        if resource == "members":
            return self.sync_members(ctx)
        raise ValueError(
            f"Unknown resource '{resource}'. Must be one of {list(RESYNC_RESOURCES)}"
        )

    def run_full_pass(
        self, ctx: InstallationContext, repo_names: Optional[List[str]] = None
    ) -> Dict[str, int]:
        """One poll pass: repositories and branches, pull requests, members."""
        names = self._repository_names(ctx, repo_names)
        synced = sum(1 for name in names if self.sync_repository(ctx, name) is not None)
        prs = self.sync_all_pull_requests(ctx, names)
        members = self.sync_members(ctx)
        summary = {"repositories": synced, "pull_requests": prs, "members": members}
        logger.info(f"Reconciliation pass finished: {summary}")
        self.notifier("github", {"installation_id": ctx.installation_id, **summary})
        return summary
