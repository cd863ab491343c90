import json
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from orgmirror.core.exceptions import ProviderError
from orgmirror.llms.llm_factory import llm
from orgmirror.llms.llm_interface import LLMInterface
from orgmirror.models.analysis import PullRequestAnalysis
from orgmirror.prompts.prompts import Prompts
from orgmirror.utils.file_filter import filter_changed_files
from orgmirror.utils.logger import logger
from orgmirror.utils.response_parser import repair_and_parse

LARGE_CHANGE_THRESHOLD = 500


def build_pr_payload(pull_request: Dict[str, Any]) -> Dict[str, Any]:
    """The slice of a pull request that is sent for analysis."""
    return {
        "title": pull_request.get("title"),
        "body": pull_request.get("body"),
        "changed_files": filter_changed_files(pull_request.get("changed_files") or []),
        "requested_reviewers": [
            reviewer.get("login")
            for reviewer in pull_request.get("requested_reviewers") or []
            if isinstance(reviewer, dict)
        ],
    }


def static_checks(pull_request: Dict[str, Any]) -> Dict[str, Any]:
    """Checklist derived from PR metadata alone, used when no analysis exists."""
    title = pull_request.get("title") or ""
    changed_files: List[Dict[str, Any]] = pull_request.get("changed_files") or []
    changed_lines = sum(
        (f.get("additions") or 0) + (f.get("deletions") or 0) for f in changed_files
    )
    checklist = [
        {
            "title": "Has a description",
            "passed": bool((pull_request.get("body") or "").strip()),
        },
        {
            "title": "Title is concise",
            "passed": 0 < len(title) <= 72,
        },
        {
            "title": "Reviewers requested",
            "passed": bool(pull_request.get("requested_reviewers")),
        },
        {
            "title": "Change is small enough to review",
            "passed": changed_lines <= LARGE_CHANGE_THRESHOLD,
            "details": f"{changed_lines} changed lines",
        },
    ]
    return {"static": True, "checklist": checklist}


class PullRequestAnalyzer:
    """Analysis collaborator backed by the configured LLM provider."""

    def __init__(self, llm_provider: Optional[LLMInterface] = None):
        self._llm = llm_provider

    @property
    def llm(self) -> LLMInterface:
        return self._llm or llm()

    def analyze(
        self, pr_payload: Dict[str, Any], template: Optional[str] = None
    ) -> Optional[PullRequestAnalysis]:
        user_prompt = Prompts.ANALYSIS_PROMPT.format(
            pr_data=json.dumps(pr_payload, default=str),
            template=template or "No template provided.",
        )
        try:
            response = self.llm.complete(Prompts.ANALYSIS_SYSTEM_PROMPT, user_prompt)
        except ProviderError as e:
            logger.error(f"Pull request analysis failed: {e}")
            return None

        parsed = repair_and_parse(response)
        if not isinstance(parsed, dict):
            logger.error("Analysis response could not be parsed into an object.")
            return None

        try:
            return PullRequestAnalysis.model_validate(parsed)
        except ValidationError as e:
            logger.error(f"Analysis response does not match the expected shape: {e}")
            return None

    def explain(self, pr_payload: Dict[str, Any]) -> Optional[str]:
        user_prompt = Prompts.EXPLAIN_PROMPT.format(
            pr_data=json.dumps(pr_payload, default=str)
        )
        try:
            return self.llm.complete(
                Prompts.EXPLAIN_SYSTEM_PROMPT, user_prompt, json_mode=False
            )
        except ProviderError as e:
            logger.error(f"Pull request explanation failed: {e}")
            return None
