"""
Process-wide singletons wiring the mirror together.

Each factory is cached so the webhook routes, the read API and the poll
thread share one store, one reconciler and one in-flight guard.
"""

from functools import lru_cache
from typing import Dict

from orgmirror.config import settings
from orgmirror.core.exceptions import AuthError, NotFound
from orgmirror.events.dispatcher import EventDispatcher
from orgmirror.guards.in_flight import InFlightGuard
from orgmirror.integrations.github.github import (
    GitHubApp,
    InstallationContext,
    open_installation,
)
from orgmirror.models import PullRequestStatus
from orgmirror.services.analyzer import PullRequestAnalyzer
from orgmirror.services.command_dispatcher import CommandDispatcher
from orgmirror.services.mirror_store import MirrorStore
from orgmirror.services.poll_scheduler import PollScheduler
from orgmirror.services.reconciler import FETCH_ERRORS, Reconciler
from orgmirror.utils.logger import logger


@lru_cache(maxsize=None)
def github_app() -> GitHubApp:
    return GitHubApp()


@lru_cache(maxsize=None)
def mirror_store() -> MirrorStore:
    return MirrorStore()


@lru_cache(maxsize=None)
def analyzer() -> PullRequestAnalyzer:
    return PullRequestAnalyzer()


@lru_cache(maxsize=None)
def reconciler() -> Reconciler:
    return Reconciler(mirror_store(), analyzer())


@lru_cache(maxsize=None)
def in_flight_guard() -> InFlightGuard:
    return InFlightGuard()


@lru_cache(maxsize=None)
def command_dispatcher() -> CommandDispatcher:
    return CommandDispatcher(reconciler(), analyzer(), in_flight_guard())


@lru_cache(maxsize=None)
def event_dispatcher() -> EventDispatcher:
    return EventDispatcher(github_app, mirror_store(), reconciler(), command_dispatcher())


def active_context() -> InstallationContext:
    """The installation polling and explicit resyncs work against.

    ``GITHUB_INSTALLATION_ID`` wins when set, and is seeded into the store on
    first use; otherwise the first stored installation is used.

    Raises:
        NotFound: when no installation is configured or stored.
        AuthError: when the installation cannot be authenticated.
    """
    store = mirror_store()
    preferred = (
        int(settings.GITHUB_INSTALLATION_ID) if settings.GITHUB_INSTALLATION_ID else None
    )
    installation = store.get_active_installation(preferred)
    if installation is not None:
        return open_installation(
            github_app(), installation.installation_id, installation.owner_login
        )
    if preferred is None:
        raise NotFound("No GitHub installation is configured or stored")

    payload = github_app().get_installation(preferred)
    owner = (payload.get("account") or {}).get("login")
    if not owner:
        raise AuthError(f"Installation {preferred} has no account login")
    store.save_installation(preferred, owner, payload)
    return open_installation(github_app(), preferred, owner)


def poll_pass() -> Dict[str, int]:
    """Reconcile the active installation, then scan open PRs for commands."""
    ctx = active_context()
    summary = reconciler().run_full_pass(ctx, settings.POLL_REPOSITORIES or None)

    scannable = (PullRequestStatus.OPEN.value, PullRequestStatus.DRAFT.value)
    repos = set(settings.POLL_REPOSITORIES)
    commands = 0
    for pr in mirror_store().list_pull_requests(ctx.installation_id):
        if pr.status not in scannable or (repos and pr.repo_name not in repos):
            continue
        try:
            if command_dispatcher().scan_pull_request(ctx, pr.repo_name, pr.number):
                commands += 1
        except FETCH_ERRORS as e:
            logger.error(f"Failed to scan comments of {pr.repo_name}#{pr.number}: {e}")
    summary["commands"] = commands
    return summary


@lru_cache(maxsize=None)
def poll_scheduler() -> PollScheduler:
    return PollScheduler(settings.POLL_INTERVAL_SECONDS, poll_pass)
