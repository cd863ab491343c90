from typing import Callable, Optional

from fastapi import BackgroundTasks

from orgmirror.events.webhook_event import WebhookEvent
from orgmirror.integrations.github.github import (
    GitHubApp,
    InstallationContext,
    open_installation,
)
from orgmirror.services.command_dispatcher import CommandDispatcher
from orgmirror.services.mirror_store import MirrorStore
from orgmirror.services.reconciler import Reconciler
from orgmirror.utils.logger import logger


class EventDispatcher:
    """Routes verified webhook events to the reconciler and command dispatcher."""

    def __init__(
        self,
        app_provider: Callable[[], GitHubApp],
        store: MirrorStore,
        reconciler: Reconciler,
        commands: CommandDispatcher,
    ):
        self.app_provider = app_provider
        self.store = store
        self.reconciler = reconciler
        self.commands = commands

    def context_for(self, event: WebhookEvent) -> InstallationContext:
        owner = event.owner_login
        if owner is None:
            stored = self.store.get_installation(event.installation_id)
            owner = stored.owner_login if stored else None
        return open_installation(self.app_provider(), event.installation_id, owner)

    def dispatch(
        self, event: WebhookEvent, background_tasks: Optional[BackgroundTasks] = None
    ) -> None:
        logger.info(f"Dispatching event: {event}")
        if event.installation_id is None:
            logger.warning(f"Event {event.name} carries no installation. Ignoring.")
            return

        if event.name == "installation":
            self._handle_installation(event, background_tasks)
            return

        ctx = self.context_for(event)
        if event.name == "issue_comment":
            self._handle_comment(ctx, event)
            return
        self.reconciler.handle_event(ctx, event)

    def _handle_installation(
        self, event: WebhookEvent, background_tasks: Optional[BackgroundTasks]
    ) -> None:
        if event.action == "deleted":
            self.store.purge_installation(event.installation_id)
            return
        if event.action != "created":
            logger.info(f"Ignoring installation action '{event.action}'.")
            return

        installation = event.payload.get("installation") or {}
        ctx = open_installation(
            self.app_provider(), event.installation_id, event.owner_login
        )
        self.store.save_installation(ctx.installation_id, ctx.owner, installation)
        self.reconciler.sync_installation(ctx)

        if background_tasks is not None:
            background_tasks.add_task(self.reconciler.deferred_pull_request_sync, ctx)
        else:
            self.reconciler.deferred_pull_request_sync(ctx)

    def _handle_comment(self, ctx: InstallationContext, event: WebhookEvent) -> None:
        if event.action != "created" or not event.is_pull_request_comment:
            return
        command = self.commands.command_in(ctx, event.comment)
        if command is None:
            return
        self.commands.dispatch(ctx, event.repo_name, event.pr_number, command)
