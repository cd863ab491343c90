from unittest.mock import MagicMock, patch

import pytest
from fastapi import BackgroundTasks

from orgmirror.core.exceptions import ParseError
from orgmirror.events.dispatcher import EventDispatcher
from orgmirror.integrations.github.github import InstallationContext
from orgmirror.integrations.github.github_webhook_parser import GitHubWebhookParser

parser = GitHubWebhookParser()


def _comment_payload(body="/review", on_pull_request=True, action="created"):
    issue = {"number": 9}
    if on_pull_request:
        issue["pull_request"] = {"url": "x"}
    return {
        "action": action,
        "installation": {"id": 1},
        "repository": {"name": "api", "owner": {"login": "acme"}},
        "issue": issue,
        "comment": {"id": 3, "body": body, "user": {"login": "octocat"}},
    }


@pytest.fixture
def collaborators(store, github):
    reconciler = MagicMock()
    commands = MagicMock()
    app = MagicMock()
    dispatcher = EventDispatcher(lambda: app, store, reconciler, commands)
    ctx = InstallationContext(1, "acme", github)
    with patch("orgmirror.events.dispatcher.open_installation", return_value=ctx) as opener:
        yield dispatcher, reconciler, commands, opener, ctx


def test_parser_reads_installation_and_action():
    event = parser.parse("pull_request", {"action": "opened", "installation": {"id": "42"}}, "d1")

    assert event.name == "pull_request"
    assert event.action == "opened"
    assert event.installation_id == 42
    assert event.delivery_id == "d1"


@pytest.mark.parametrize("event_name, payload", [(None, {}), ("push", ["not", "an", "object"])])
def test_parser_rejects_malformed_deliveries(event_name, payload):
    with pytest.raises(ParseError):
        parser.parse(event_name, payload)


def test_event_without_installation_is_ignored(collaborators):
    dispatcher, reconciler, commands, opener, _ = collaborators

    dispatcher.dispatch(parser.parse("push", {"ref": "refs/heads/main"}))

    opener.assert_not_called()
    reconciler.handle_event.assert_not_called()


def test_installation_created_syncs_and_defers_pull_requests(collaborators, store):
    dispatcher, reconciler, _, opener, ctx = collaborators
    payload = {"action": "created", "installation": {"id": 1, "account": {"login": "acme"}}}
    background_tasks = BackgroundTasks()

    dispatcher.dispatch(parser.parse("installation", payload), background_tasks)

    assert store.get_installation(1).owner_login == "acme"
    reconciler.sync_installation.assert_called_once_with(ctx)
    reconciler.deferred_pull_request_sync.assert_not_called()
    assert len(background_tasks.tasks) == 1
    assert background_tasks.tasks[0].func == reconciler.deferred_pull_request_sync


def test_installation_created_without_background_tasks_runs_inline(collaborators):
    dispatcher, reconciler, _, _, ctx = collaborators
    payload = {"action": "created", "installation": {"id": 1, "account": {"login": "acme"}}}

    dispatcher.dispatch(parser.parse("installation", payload))

    reconciler.deferred_pull_request_sync.assert_called_once_with(ctx)


def test_installation_deleted_purges(collaborators, store):
    dispatcher, reconciler, _, opener, _ = collaborators
    store.save_installation(1, "acme", {})
    store.save_installation(2, "other", {})

    dispatcher.dispatch(parser.parse("installation", {"action": "deleted", "installation": {"id": 1}}))

    assert store.get_installation(1) is None
    assert store.get_installation(2) is not None
    opener.assert_not_called()


def test_pull_request_comment_is_dispatched_as_command(collaborators):
    dispatcher, reconciler, commands, _, ctx = collaborators
    commands.command_in.return_value = "review"

    dispatcher.dispatch(parser.parse("issue_comment", _comment_payload()))

    commands.command_in.assert_called_once_with(ctx, _comment_payload()["comment"])
    commands.dispatch.assert_called_once_with(ctx, "api", 9, "review")
    reconciler.handle_event.assert_not_called()


@pytest.mark.parametrize(
    "payload",
    [_comment_payload(on_pull_request=False), _comment_payload(action="edited")],
)
def test_other_comments_are_ignored(collaborators, payload):
    dispatcher, _, commands, _, _ = collaborators

    dispatcher.dispatch(parser.parse("issue_comment", payload))

    commands.command_in.assert_not_called()
    commands.dispatch.assert_not_called()


def test_owner_falls_back_to_stored_installation(collaborators, store):
    dispatcher, reconciler, _, opener, ctx = collaborators
    store.save_installation(1, "acme", {})

    dispatcher.dispatch(parser.parse("member", {"action": "added", "installation": {"id": 1}}))

    assert opener.call_args.args[1:] == (1, "acme")
    reconciler.handle_event.assert_called_once()
