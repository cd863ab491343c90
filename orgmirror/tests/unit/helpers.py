import json
from typing import Any, Dict, List, Optional


def make_repo(name: str, updated_at: str = "2024-01-01T00:00:00Z", **overrides) -> Dict[str, Any]:
    """A repository as returned by the GitHub gateway."""
    repo = {
        "id": abs(hash(name)) % 100000,
        "name": name,
        "full_name": f"acme/{name}",
        "owner": {"login": "acme", "url": "https://api.github.com/users/acme"},
        "html_url": f"https://github.com/acme/{name}",
        "permissions": {"admin": True},
        "languages": ["Python"],
        "primary_language": "Python",
        "updated_at": updated_at,
    }
    repo.update(overrides)
    return repo


def make_file(filename: str, additions: int = 1, deletions: int = 0) -> Dict[str, Any]:
    return {
        "filename": filename,
        "status": "modified",
        "additions": additions,
        "deletions": deletions,
        "changes": additions + deletions,
        "patch": "@@ -1 +1 @@\n-old\n+new",
    }


def make_pr(
    number: int = 1,
    title: str = "Add feature",
    state: str = "open",
    draft: bool = False,
    updated_at: str = "2024-01-01T00:00:00Z",
    changed_files: Optional[List[Dict[str, Any]]] = None,
    **overrides,
) -> Dict[str, Any]:
    """A pull request as returned by the GitHub gateway, files included."""
    pr = {
        "number": number,
        "title": title,
        "body": "Adds a feature.",
        "state": state,
        "draft": draft,
        "updated_at": updated_at,
        "user": {"login": "octocat", "html_url": "https://github.com/octocat"},
        "head": {"ref": "feature", "sha": "abc123", "repo": {"name": "api", "url": "x"}},
        "base": {"ref": "main"},
        "_links": {"self": {"href": "x"}},
        "requested_reviewers": [{"login": "reviewer"}],
    }
    if changed_files is not None:
        pr["changed_files"] = changed_files
    pr.update(overrides)
    return pr


def analysis_response(**overrides) -> str:
    """Raw LLM text for a full analysis."""
    data = {
        "qualityScore": 80,
        "checklist": [{"title": "Tests", "passed": True}],
        "summary": "## Summary\nAdds a feature.",
        "review": {
            "reviewBody": "Looks fine.",
            "reviewComments": [{"path": "src/index.ts", "body": "Nice.", "position": 3}],
        },
        "codeChangeGeneration": {
            "event": "COMMENT",
            "reviewBody": "One suggestion.",
            "reviewComments": [
                {"path": "src/index.ts", "body": "Rename.", "position": 3},
                {"path": "src/index.ts", "body": "Guard.", "position": 7},
            ],
        },
    }
    data.update(overrides)
    return json.dumps(data)
