import pytest

from orgmirror.core.exceptions import AuthError, GitHubTimeout
from orgmirror.tests.unit.helpers import analysis_response, make_file, make_pr, make_repo


@pytest.fixture
def opened_pr():
    return make_pr(
        number=12,
        changed_files=[make_file("package-lock.json", 900), make_file("src/index.ts", 5)],
    )


def test_opened_pull_request_end_to_end(reconciler, ctx, github, store, fake_llm, opened_pr):
    github.get_pull_request.return_value = opened_pr
    github.get_pull_request_template.return_value = "## What\n## Why"
    fake_llm.complete.return_value = analysis_response()

    analysis = reconciler.sync_pull_request(ctx, "api", 12, "opened")

    row = store.get_pull_request(1, "api", 12)
    assert row.status == "open"
    assert [f["filename"] for f in row.changed_files] == ["package-lock.json", "src/index.ts"]

    assert fake_llm.complete.call_count == 1
    user_prompt = fake_llm.complete.call_args.args[1]
    assert "src/index.ts" in user_prompt
    assert "package-lock.json" not in user_prompt
    assert "## What" in user_prompt

    records = store.list_analyses(1)
    assert len(records) == 1
    assert records[0].pr_number == 12
    assert records[0].analysis["qualityScore"] == 80

    github.submit_review.assert_called_once()
    repo, number, event, body, comments = github.submit_review.call_args.args
    assert (repo, number, event, body) == ("api", 12, "COMMENT", "One suggestion.")
    assert [(c["path"], c["position"], c["body"]) for c in comments] == [
        ("src/index.ts", 3, "Rename."),
        ("src/index.ts", 7, "Guard."),
    ]
    github.update_pull_request_body.assert_called_once_with(
        "api", 12, "## Summary\nAdds a feature."
    )
    assert analysis.quality_score == 80


def test_draft_pull_request_is_stored_but_not_analyzed(reconciler, ctx, github, store, fake_llm):
    github.get_pull_request.return_value = make_pr(number=3, draft=True, changed_files=[])

    assert reconciler.sync_pull_request(ctx, "api", 3, "opened") is None

    assert store.get_pull_request(1, "api", 3).status == "draft"
    fake_llm.complete.assert_not_called()


def test_closed_action_marks_closed_without_analysis(reconciler, ctx, github, store, fake_llm):
    github.get_pull_request.return_value = make_pr(number=3, state="closed", changed_files=[])

    reconciler.sync_pull_request(ctx, "api", 3, "closed")

    assert store.get_pull_request(1, "api", 3).status == "closed"
    fake_llm.complete.assert_not_called()


def test_unparseable_analysis_stores_nothing(reconciler, ctx, github, store, fake_llm, opened_pr):
    github.get_pull_request.return_value = opened_pr
    fake_llm.complete.return_value = "no json here"

    assert reconciler.sync_pull_request(ctx, "api", 12, "synchronize") is None
    assert store.list_analyses(1) == []
    github.submit_review.assert_not_called()


def test_missing_pull_request_is_skipped(reconciler, ctx, github, store):
    github.get_pull_request.return_value = None

    assert reconciler.sync_pull_request(ctx, "api", 404, "opened") is None
    assert store.list_pull_requests(1) == []


def test_sync_repository_upserts_repo_and_branches(reconciler, ctx, github, store):
    github.get_repository.return_value = make_repo("api")
    github.list_branches.return_value = ["main", "dev"]

    assert reconciler.sync_repository(ctx, "api") == "green"

    assert store.list_branches(1)[0].branches == ["main", "dev"]


def test_sync_repository_skips_fetch_failures(reconciler, ctx, github, store):
    github.get_repository.side_effect = GitHubTimeout("slow")

    assert reconciler.sync_repository(ctx, "api") is None
    assert store.list_repositories(1) == []


def test_auth_errors_abort(reconciler, ctx, github):
    github.get_repository.side_effect = AuthError("token revoked")

    with pytest.raises(AuthError):
        reconciler.sync_repository(ctx, "api")


def test_sync_all_pull_requests_skips_failing_repository(reconciler, ctx, github, store):
    store.upsert_repository(1, make_repo("api"))
    store.upsert_repository(1, make_repo("web"))

    def list_pull_requests(repo_name):
        if repo_name == "api":
            raise GitHubTimeout("slow")
        return [make_pr(number=1), make_pr(number=2, state="closed")]

    github.list_pull_requests.side_effect = list_pull_requests
    github.list_pull_request_files.return_value = [make_file("src/app.py")]

    assert reconciler.sync_all_pull_requests(ctx) == 2

    rows = {row.number: row for row in store.list_pull_requests(1, repo_name="web")}
    assert rows[1].changed_files == [make_file("src/app.py")]
    assert rows[2].status == "closed"
    github.list_pull_request_files.assert_called_once_with("web", 1)


def test_members_enriched_from_commits_until_resolved(reconciler, ctx, github, store):
    for name in ("api", "web", "docs", "infra"):
        store.upsert_repository(1, make_repo(name))
    github.list_members.return_value = [{"login": "ada", "id": 1}, {"login": "bob", "id": 2}]
    github.list_recent_commits.return_value = [
        {"author": {"login": "ada"}, "commit": {"author": {"name": "Ada", "email": "ada@acme.test"}}},
        {"author": {"login": "bob"}, "commit": {"author": {"name": "Bob", "email": "bob@acme.test"}}},
    ]

    assert reconciler.sync_members(ctx) == 2

    members = {m.login: (m.email, m.name) for m in store.list_members(1)}
    assert members == {"ada": ("ada@acme.test", "Ada"), "bob": ("bob@acme.test", "Bob")}
    # Everyone is resolved after the first batch of three repositories.
    assert github.list_recent_commits.call_count == 3


def test_member_resync_keeps_previously_enriched_values(reconciler, ctx, github, store):
    store.upsert_members(1, [{"login": "ada", "email": "ada@acme.test", "name": "Ada"}])
    github.list_members.return_value = [{"login": "ada", "id": 1}]

    reconciler.sync_members(ctx)

    github.list_recent_commits.assert_not_called()
    member = store.list_members(1)[0]
    assert (member.email, member.name) == ("ada@acme.test", "Ada")


def test_sync_installation_replaces_repositories_and_notifies(
    reconciler, ctx, github, store, notifier
):
    github.list_repositories.return_value = [make_repo("api"), make_repo("web")]
    github.list_branches.return_value = ["main"]
    github.list_members.return_value = []

    reconciler.sync_installation(ctx)

    assert [r.name for r in store.list_repositories(1)] == ["api", "web"]
    assert len(store.list_branches(1)) == 2
    notifier.assert_called_once()


def test_force_resync_rejects_unknown_resource(reconciler, ctx):
    with pytest.raises(ValueError):
        reconciler.force_resync(ctx, "issues")


def test_force_resync_pull_requests_replaces_rows(reconciler, ctx, github, store):
    store.upsert_repository(1, make_repo("api"))
    store.upsert_pull_request(1, "api", make_pr(number=99))
    github.list_pull_requests.return_value = [make_pr(number=1)]
    github.list_pull_request_files.return_value = []

    assert reconciler.force_resync(ctx, "pull_requests") == 1
    assert [row.number for row in store.list_pull_requests(1)] == [1]


def test_run_full_pass_summarizes(reconciler, ctx, github, store, notifier):
    github.get_repository.side_effect = lambda name: make_repo(name)
    github.list_branches.return_value = ["main"]
    github.list_pull_requests.return_value = [make_pr(number=1)]
    github.list_pull_request_files.return_value = []
    github.list_members.return_value = [{"login": "ada", "email": "a@acme.test", "name": "Ada"}]

    summary = reconciler.run_full_pass(ctx, ["api", "web"])

    assert summary == {"repositories": 2, "pull_requests": 2, "members": 1}
    notifier.assert_called_once_with("github", {"installation_id": 1, **summary})


def test_branch_fetch_failure_keeps_stored_branches(reconciler, ctx, github, store):
    store.upsert_repository(1, make_repo("api"))
    store.upsert_repository(1, make_repo("web"))
    store.replace_branches(1, "api", ["main", "dev"])
    store.replace_branches(1, "web", ["main"])
    store.replace_branches(1, "gone", ["main"])

    def list_branches(repo_name):
        if repo_name == "api":
            raise GitHubTimeout("slow")
        return ["main", "release"]

    github.list_branches.side_effect = list_branches

    assert reconciler.sync_all_branches(ctx) == 1

    assert {b.repo_name: b.branches for b in store.list_branches(1)} == {
        "api": ["main", "dev"],
        "web": ["main", "release"],
    }


def test_auth_error_inside_a_batch_aborts_member_sync(reconciler, ctx, github, store):
    store.upsert_repository(1, make_repo("api"))
    github.list_members.return_value = [{"login": "ada", "id": 1}]
    github.list_recent_commits.side_effect = AuthError("token revoked")

    with pytest.raises(AuthError):
        reconciler.sync_members(ctx)

    assert store.list_members(1) == []
