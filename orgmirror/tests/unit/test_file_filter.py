import pytest

from orgmirror.utils.file_filter import ChangedFileFilter, filter_changed_files


def test_only_source_files_survive():
    files = [
        {"filename": "package-lock.json"},
        {"filename": "dist/app.js"},
        {"filename": "src/index.ts"},
    ]

    assert filter_changed_files(files) == [{"filename": "src/index.ts"}]


@pytest.mark.parametrize(
    "filename",
    [
        "yarn.lock",
        "web/pnpm-lock.yaml",
        "poetry.lock",
        "Cargo.lock",
        "go.sum",
        "packages/ui/build/index.js",
        "static/app.min.js",
        "static/site.min.css",
        "static/app.js.map",
        "api/service.pb.go",
        "proto/service_pb2.py",
        "proto/service_pb2_grpc.py",
        "client/schema.generated.ts",
    ],
)
def test_generated_and_vendored_files_are_skipped(filename):
    assert ChangedFileFilter().should_skip(filename)


@pytest.mark.parametrize(
    "filename",
    ["src/build_tools.py", "docs/distribution.md", "lib/mapper.py", "README.md"],
)
def test_similar_looking_sources_are_kept(filename):
    assert not ChangedFileFilter().should_skip(filename)


def test_entries_without_filename_are_dropped():
    files = [{"filename": ""}, {"status": "added"}, None, {"filename": "main.py"}]

    assert filter_changed_files(files) == [{"filename": "main.py"}]
