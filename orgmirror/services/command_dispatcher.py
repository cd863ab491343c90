from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from orgmirror.config import settings
from orgmirror.core.exceptions import NotFound, ProviderError
from orgmirror.guards.in_flight import InFlightGuard, command_key
from orgmirror.integrations.github.github import BOT_COMMENT_MARKER, InstallationContext
from orgmirror.models.base_model import parse_github_timestamp, utcnow
from orgmirror.services.analyzer import PullRequestAnalyzer, build_pr_payload
from orgmirror.services.reconciler import Reconciler
from orgmirror.utils.logger import logger

COMMANDS = ("review", "summary", "explain")

ACKNOWLEDGEMENTS = {
    "review": "On it! Reviewing this pull request now.",
    "summary": "On it! Writing a summary for this pull request.",
    "explain": "On it! Preparing an explanation of this pull request.",
}

APOLOGY = (
    "Sorry, I could not complete `/{command}` on this pull request. "
    "Please try again in a few minutes."
)


def parse_command(body: Optional[str]) -> Optional[str]:
    """The command named by the first word of a comment, if any."""
    words = (body or "").strip().split()
    if not words or not words[0].startswith("/"):
        return None
    command = words[0][1:].lower()
    return command if command in COMMANDS else None


def is_bot_comment(comment: Dict[str, Any], bot_login: str) -> bool:
    user = comment.get("user") or {}
    return (
        BOT_COMMENT_MARKER in (comment.get("body") or "")
        or user.get("login") == bot_login
        or user.get("type") == "Bot"
    )


class CommandDispatcher:
    """
    Detects slash-commands in pull-request conversations and runs each one
    at most once at a time per pull request.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        analyzer: PullRequestAnalyzer,
        guard: InFlightGuard,
        freshness_seconds: int = settings.COMMAND_FRESHNESS_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.reconciler = reconciler
        self.analyzer = analyzer
        self.guard = guard
        self.freshness = timedelta(seconds=freshness_seconds)
        self.clock = clock

    def is_fresh(self, comment: Dict[str, Any]) -> bool:
        created_at = parse_github_timestamp(comment.get("created_at"))
        if created_at is None:
            return False
        return self.clock() - created_at <= self.freshness

    def command_in(
        self, ctx: InstallationContext, comment: Optional[Dict[str, Any]]
    ) -> Optional[str]:
        if not comment or is_bot_comment(comment, ctx.github.bot_login):
            return None
        if not self.is_fresh(comment):
            logger.debug(f"Ignoring stale comment {comment.get('id')}.")
            return None
        return parse_command(comment.get("body"))

    def scan_pull_request(
        self, ctx: InstallationContext, repo_name: str, number: int
    ) -> Optional[str]:
        """Run the command in the latest comment of a PR, if it is fresh.

        Returns:
            The command that was executed, or None.
        """
        # Anything older than the freshness window could never run, so only
        # the comments inside it are fetched.
        comment = ctx.github.get_latest_issue_comment(
            repo_name, number, since=self.clock() - self.freshness
        )
        command = self.command_in(ctx, comment)
        if command is None:
            return None
        return command if self.dispatch(ctx, repo_name, number, command) else None

    def dispatch(
        self, ctx: InstallationContext, repo_name: str, number: int, command: str
    ) -> bool:
        """Run ``command`` unless the same pull request is already being processed."""
        key = command_key(repo_name, number)
        result = self.guard.acquire(key)
        if not result.allowed:
            logger.info(f"Dropping /{command}: {result.reason}")
            return False

        try:
            logger.info(f"Running /{command} on {key}")
            ctx.github.create_issue_comment(repo_name, number, ACKNOWLEDGEMENTS[command])
            self._run(ctx, repo_name, number, command)
        except Exception as e:
            logger.exception(f"/{command} failed on {key}: {e}")
            self._apologize(ctx, repo_name, number, command)
        finally:
            self.guard.release(key)
        return True

    def _run(self, ctx: InstallationContext, repo_name: str, number: int, command: str) -> None:
        pr = ctx.github.get_pull_request(repo_name, number)
        if pr is None:
            raise NotFound(f"Pull request {repo_name}#{number} not found")

        if command == "explain":
            explanation = self.analyzer.explain(build_pr_payload(pr))
            if not explanation:
                raise ProviderError("No explanation was generated")
            ctx.github.create_issue_comment(repo_name, number, explanation)
            return

        analysis = self.reconciler.analyze(ctx, repo_name, pr)
        if analysis is None:
            raise ProviderError("No analysis was generated")
        if command == "review":
            self.reconciler.publish_review(ctx, repo_name, number, analysis)
        elif not self.reconciler.publish_description(ctx, repo_name, number, analysis):
            raise ProviderError("The analysis has no summary")

    def _apologize(
        self, ctx: InstallationContext, repo_name: str, number: int, command: str
    ) -> None:
        try:
            ctx.github.create_issue_comment(
                repo_name, number, APOLOGY.format(command=command)
            )
        except Exception as e:
            logger.error(f"Failed to post apology on {repo_name}#{number}: {e}")
