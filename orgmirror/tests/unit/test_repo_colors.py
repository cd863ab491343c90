from orgmirror.utils.repo_colors import REPO_COLORS, next_repo_color


def test_seven_repositories_get_distinct_colors():
    colors = []
    for count in range(7):
        colors.append(next_repo_color(colors, count))

    assert colors == REPO_COLORS
    assert len(set(colors)) == 7


def test_eighth_repository_reuses_color_by_count():
    assert next_repo_color(REPO_COLORS, 7) == REPO_COLORS[0]
    assert next_repo_color(REPO_COLORS, 10) == REPO_COLORS[3]


def test_freed_color_is_reused_first():
    used = [c for c in REPO_COLORS if c != "red"]
    assert next_repo_color(used, len(used)) == "red"
