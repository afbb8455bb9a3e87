"""Pull request lookup for session branches through the GitHub CLI."""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from ..utils.logging import LogContext, get_logger
from ..utils.process import CommandExecutionError, CommandExecutor, quote_posix
from .models import Session

logger = get_logger(__name__, LogContext.GIT)

GITHUB_URL = "https://github.com"
DEFAULT_BASE_BRANCH = "main"

# git@github.com:owner/repo.git, https://github.com/owner/repo(.git), ssh://git@github.com/owner/repo
GITHUB_REMOTE_PATTERN = re.compile(
    r"github\.com[:/](?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
)


@dataclass(frozen=True)
class PullRequestFound:
    number: int
    url: str
    title: str
    state: str


@dataclass(frozen=True)
class PullRequestMissing:
    """No pull request is known for the branch.

    ``create_url`` is set when the GitHub CLI answered and found nothing;
    ``search_url`` when the CLI could not be used and the answer is unknown.
    """

    branch_name: str
    create_url: str | None = None
    search_url: str | None = None

    @property
    def fallback(self) -> bool:
        return self.search_url is not None


PullRequestLookupResult = PullRequestFound | PullRequestMissing


def parse_github_slug(remote_url: str) -> str | None:
    """``owner/repo`` of a GitHub remote URL, or None for other hosts."""
    match = GITHUB_REMOTE_PATTERN.search(remote_url.strip())
    if match is None:
        return None
    return f"{match.group('owner')}/{match.group('repo')}"


class PullRequestLookup:
    """Finds the open or merged pull request whose head is a session's branch."""

    def __init__(self, executor: CommandExecutor, timeout: float = 10.0):
        self.executor = executor
        self.timeout = timeout

    async def find(self, session: Session) -> PullRequestLookupResult:
        """Look up the session's pull request. Never raises for gh failures."""
        branch = session.branch
        cwd = self._working_directory(session)
        slug = await self._repository_slug(session, cwd)
        command = (
            f"gh pr list --head {quote_posix(branch)} "
            "--json number,url,title,state --limit 1"
        )

        try:
            result = await self.executor.execute(
                command, timeout=self.timeout, suppress_errors=True, cwd=cwd
            )
        except CommandExecutionError as e:
            logger.warning("GitHub CLI could not be started", branch=branch, error=str(e))
            return self._search_fallback(slug, branch)

        if not result.succeeded:
            logger.warning(
                "GitHub CLI command failed",
                branch=branch,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
                stderr=result.stderr.strip(),
            )
            return self._search_fallback(slug, branch)

        try:
            pull_requests = json.loads(result.stdout) if result.stdout.strip() else []
            if pull_requests:
                pr = pull_requests[0]
                found = PullRequestFound(
                    number=int(pr["number"]),
                    url=pr["url"],
                    title=pr["title"],
                    state=pr["state"],
                )
                logger.info("Found pull request", branch=branch, pr_number=found.number)
                return found
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Unexpected GitHub CLI output", branch=branch, error=str(e))
            return self._search_fallback(slug, branch)

        logger.info("No pull request for branch", branch=branch)
        return PullRequestMissing(
            branch_name=branch,
            create_url=f"{GITHUB_URL}/{slug}/compare/{DEFAULT_BASE_BRANCH}...{branch}?expand=1",
        )

    @staticmethod
    def _working_directory(session: Session) -> Path:
        if session.worktree_path.is_dir():
            return session.worktree_path
        return session.project_path

    async def _repository_slug(self, session: Session, cwd: Path) -> str:
        """GitHub ``owner/repo`` from the origin remote.

        Falls back to ``<project>/<project>`` when there is no GitHub remote.
        """
        try:
            result = await self.executor.execute(
                "git remote get-url origin",
                timeout=self.timeout,
                suppress_errors=True,
                cwd=cwd,
            )
        except CommandExecutionError:
            result = None

        slug = parse_github_slug(result.stdout) if result and result.succeeded else None
        return slug or f"{session.project_name}/{session.project_name}"

    @staticmethod
    def _search_fallback(slug: str, branch: str) -> PullRequestMissing:
        query = quote(f"is:pr head:{branch}", safe="")
        return PullRequestMissing(
            branch_name=branch,
            search_url=f"{GITHUB_URL}/{slug}/pulls?q={query}",
        )
