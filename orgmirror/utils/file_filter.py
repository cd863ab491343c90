# orgmirror/utils/file_filter.py

import re
from typing import Any, Dict, List


class ChangedFileFilter:
    """
    Drops build artifacts, lockfiles and generated sources from a PR's
    changed-file list before it is sent for analysis.
    """

    SKIP_PATTERNS = [
        # package manager locks and manifests
        r"(^|/)package-lock\.json$",
        r"(^|/)package\.json$",
        r"(^|/)yarn\.lock$",
        r"(^|/)pnpm-lock\.yaml$",
        r"(^|/)poetry\.lock$",
        r"(^|/)Pipfile\.lock$",
        r"(^|/)Cargo\.lock$",
        r"(^|/)go\.sum$",
        r"(^|/)composer\.lock$",
        r"(^|/)Gemfile\.lock$",
        # build output
        r"(^|/)dist/",
        r"(^|/)build/",
        # minified and mapped assets
        r"\.min\.js$",
        r"\.min\.css$",
        r"\.map$",
        # generated code
        r"\.pb\.go$",
        r"_pb2(_grpc)?\.py$",
        r"\.generated\.[^/]+$",
    ]

    def __init__(self):
        self._skip_regex = re.compile("|".join(self.SKIP_PATTERNS))

    def should_skip(self, filename: str) -> bool:
        return bool(self._skip_regex.search(filename))

    def filter(self, changed_files: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        kept = []
        for changed_file in changed_files or []:
            filename = (changed_file or {}).get("filename")
            if not filename:
                continue
            if self.should_skip(filename):
                continue
            kept.append(changed_file)
        return kept


_default_filter = ChangedFileFilter()


def filter_changed_files(changed_files: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return _default_filter.filter(changed_files)
