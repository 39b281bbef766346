"""Tests for the command line interface."""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from gitdata_commit import main
from gitdata_commit.errors import InvalidBranch, RefUpdateConflict
from gitdata_commit.github.codec import DirEntry, FileEntry, SubmoduleEntry, SymlinkEntry
from gitdata_commit.github.models import Branch, ObjectLink, RepoCommit, RepoCommitDetail, Tag, TreeItem
from gitdata_commit.orchestrator import CommitResult, CommitState
from gitdata_commit.updater import RegexItemUpdater

pytestmark = pytest.mark.unit

ENV = {
    "GITHUB_USERNAME": "octocat",
    "GITHUB_TOKEN": "ghp_" + "a" * 36,
    "GITHUB_REPO_URL": "https://api.github.com/repos/acme/widgets",
}


@pytest.fixture
def env(clean_env):
    for name, value in ENV.items():
        clean_env.setenv(name, value)
    return clean_env


@pytest.fixture
def api():
    """Object client handed to commands by a patched GitDataAPI.connect."""
    api = AsyncMock()
    api.max_concurrency = 4
    with patch("gitdata_commit.GitDataAPI") as api_class:
        api_class.connect.return_value.__aenter__.return_value = api
        api.connect = api_class.connect
        yield api


@pytest.fixture
def configure_logging():
    with patch("gitdata_commit.configure_logging") as configure:
        yield configure


@pytest.fixture
def invoke(tmp_path, configure_logging):
    runner = CliRunner()

    def run(*args):
        return runner.invoke(main, ["--env-file", str(tmp_path / "absent.env"), *args])

    return run


class TestListings:
    def test_branches(self, env, api, invoke):
        api.branches.return_value = [Branch(name="develop"), Branch(name="main")]
        result = invoke("branches")
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["develop", "main"]
        config = api.connect.call_args.args[0]
        assert config.repo_url == ENV["GITHUB_REPO_URL"]

    def test_tags(self, env, api, invoke):
        api.tags.return_value = [Tag(name="v1.0", commit=ObjectLink(sha="0123456789" * 4))]
        result = invoke("tags")
        assert result.exit_code == 0, result.output
        assert result.output == "01234567 v1.0\n"

    def test_log(self, env, api, invoke):
        api.commits.return_value = [
            RepoCommit(sha="f" * 40, commit=RepoCommitDetail(message="Bump version\n\nDetails")),
        ]
        result = invoke("log", "main", "--path", "setup.cfg", "--per-page", "5")
        assert result.exit_code == 0, result.output
        assert result.output == "ffffffff Bump version\n"
        api.commits.assert_awaited_once_with(sha="main", page=None, per_page=5, path="setup.cfg")

    def test_ls(self, env, api, invoke):
        api.contents.return_value = [
            DirEntry(name="docs"),
            FileEntry(name="a.txt"),
            SymlinkEntry(name="link", target_path="a.txt"),
            SubmoduleEntry(name="lib", url="https://example.com/lib.git"),
        ]
        result = invoke("ls", "main", "vendor")
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "dir       docs",
            "file      a.txt",
            "symlink   link -> a.txt",
            "submodule lib (https://example.com/lib.git)",
        ]
        api.contents.assert_awaited_once_with("vendor", "main")

    def test_api_error_becomes_click_error(self, env, api, invoke):
        api.commits.side_effect = InvalidBranch("nope")
        result = invoke("log", "nope")
        assert result.exit_code == 1
        assert "The branch 'nope' does not exist" in result.output

    def test_missing_configuration(self, clean_env, api, invoke):
        result = invoke("branches")
        assert result.exit_code == 1
        assert "Configuration error: missing GITHUB_USERNAME" in result.output
        api.connect.assert_not_called()


class TestReplace:
    ARGS = (
        "replace",
        "main",
        "--glob", "docs/*.md",
        "--regex", r"version \d+\.\d+",
        "--replacement", "version 2.0",
        "-m", "Bump docs",
        "--author-name", "Release Bot",
        "--author-email", "release@example.com",
    )

    def test_commit(self, env, api, invoke):
        committed = CommitResult(
            branch="main",
            state=CommitState.REF_UPDATED,
            commit_sha="c" * 40,
            updated_items=[
                TreeItem(path="docs/guide.md", mode="100644", type="blob", sha="1" * 40),
                TreeItem(path="docs/api.md", mode="100644", type="blob", sha="2" * 40),
            ],
        )
        with patch("gitdata_commit.new_commit_updating_items", AsyncMock(return_value=committed)) as run:
            result = invoke(*self.ARGS)

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            f"main -> {'c' * 40}",
            "  M docs/api.md",
            "  M docs/guide.md",
        ]
        called_api, updater, branch, author, message = run.await_args.args
        assert called_api is api
        assert isinstance(updater, RegexItemUpdater)
        assert updater.pattern == "docs/*.md"
        assert updater.require_match
        assert (branch, author.name, author.email, message) == (
            "main",
            "Release Bot",
            "release@example.com",
            "Bump docs",
        )
        assert run.await_args.kwargs == {"max_concurrency": 4}

    def test_no_changes(self, env, api, invoke):
        nothing = CommitResult(branch="main", state=CommitState.NO_CHANGES)
        with patch("gitdata_commit.new_commit_updating_items", AsyncMock(return_value=nothing)):
            result = invoke(*self.ARGS, "--allow-missing")
        assert result.exit_code == 0, result.output
        assert result.output == "No changes\n"

    def test_conflict_is_reported(self, env, api, invoke):
        conflict = RefUpdateConflict("main", "c" * 40)
        with patch("gitdata_commit.new_commit_updating_items", AsyncMock(side_effect=conflict)):
            result = invoke(*self.ARGS)
        assert result.exit_code == 1
        assert "not a fast forward" in result.output

    def test_invalid_regex(self, env, api, invoke):
        args = list(self.ARGS)
        args[args.index("--regex") + 1] = "(unclosed"
        result = invoke(*args)
        assert result.exit_code == 2
        assert "invalid regex" in result.output
        api.connect.assert_not_called()


class TestGlobalOptions:
    def test_verbosity_sets_log_level(self, env, api, invoke, configure_logging):
        api.branches.return_value = []
        invoke("-vv", "--json-logs", "branches")
        configure_logging.assert_called_once_with(logging.DEBUG, json_output=True)

    def test_version(self, invoke):
        result = invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output
