from typing import Iterable, Optional

REPO_COLORS = ["green", "orange", "red", "yellow", "limegreen", "info", "lightblue"]


def next_repo_color(existing_colors: Iterable[Optional[str]], repo_count: int) -> str:
    """First palette color not in use, otherwise round-robin on ``repo_count``."""
    used = set(existing_colors)
    for color in REPO_COLORS:
        if color not in used:
            return color
    return REPO_COLORS[repo_count % len(REPO_COLORS)]
