import pytest

from orgmirror.core.exceptions import ProviderError
from orgmirror.services.analyzer import build_pr_payload, static_checks
from orgmirror.tests.unit.helpers import analysis_response, make_file, make_pr


def test_build_pr_payload_filters_files_and_flattens_reviewers():
    pr = make_pr(changed_files=[make_file("src/app.py"), make_file("package-lock.json")])

    payload = build_pr_payload(pr)

    assert set(payload) == {"title", "body", "changed_files", "requested_reviewers"}
    assert [f["filename"] for f in payload["changed_files"]] == ["src/app.py"]
    assert payload["requested_reviewers"] == ["reviewer"]


def test_static_checks_flags_missing_metadata():
    result = static_checks(
        {"title": "", "body": "  ", "changed_files": [make_file("a.py", 400, 200)]}
    )

    assert result["static"] is True
    assert not any(item["passed"] for item in result["checklist"])


def test_analyze_returns_validated_analysis(analyzer, fake_llm):
    fake_llm.complete.return_value = "```json\n" + analysis_response() + "\n```"

    analysis = analyzer.analyze(build_pr_payload(make_pr()), template="## What")

    assert analysis.quality_score == 80
    assert "## What" in fake_llm.complete.call_args.args[1]


@pytest.mark.parametrize("response", ["no json here", "[1, 2, 3]"])
def test_analyze_returns_none_for_unusable_output(analyzer, fake_llm, response):
    fake_llm.complete.return_value = response

    assert analyzer.analyze(build_pr_payload(make_pr())) is None


def test_analyze_returns_none_when_provider_fails(analyzer, fake_llm):
    fake_llm.complete.side_effect = ProviderError("rate limited")

    assert analyzer.analyze(build_pr_payload(make_pr())) is None


def test_explain_returns_none_when_provider_fails(analyzer, fake_llm):
    fake_llm.complete.side_effect = ProviderError("rate limited")

    assert analyzer.explain(build_pr_payload(make_pr())) is None
