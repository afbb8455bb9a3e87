"""Git worktree provisioning for feature sessions."""

import shutil
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..utils.logging import LogContext, WorktreeError, get_logger
from .models import derive_worktree_path, validate_feature_name, validate_project_name

logger = get_logger(__name__, LogContext.GIT)


class GitWorktreeManager:
    """Creates and tears down per-feature worktrees using GitPython.

    Worktrees live at ``<project>/<worktree_dir>/<feature>`` on branch
    ``<branch_prefix><feature>``.
    """

    def __init__(self, worktree_dir: str = ".worktrees", branch_prefix: str = "feature/"):
        """Initialize the GitWorktreeManager.

        Args:
            worktree_dir: Directory inside each project that holds worktrees
            branch_prefix: Prefix of the branch created for every feature
        """
        self.worktree_dir = worktree_dir
        self.branch_prefix = branch_prefix

    def open_repo(self, project_path: str | Path) -> Repo:
        """Open the repository at ``project_path``."""
        try:
            return Repo(Path(project_path).expanduser())
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise WorktreeError(
                f"Invalid git repository at {project_path}",
                context={"project_path": str(project_path)},
            ) from e

    def get_project_name(self, project_path: str | Path) -> str:
        """Project name is the repository directory name."""
        project_name = Path(project_path).expanduser().resolve().name
        validate_project_name(project_name)
        return project_name

    def branch_for(self, feature_name: str) -> str:
        return f"{self.branch_prefix}{feature_name}"

    def worktree_path_for(self, project_path: str | Path, feature_name: str) -> Path:
        return derive_worktree_path(
            Path(project_path).expanduser().resolve(), feature_name, self.worktree_dir
        )

    def create_worktree(self, project_path: str | Path, feature_name: str) -> Path:
        """Create a worktree and its feature branch.

        Args:
            project_path: Path to the git repository
            feature_name: Feature name (lowercase kebab-case)

        Returns:
            Absolute path of the created worktree

        Raises:
            SessionValidationError: If the feature name is invalid
            WorktreeError: If the worktree or branch cannot be created
        """
        validate_feature_name(feature_name)
        repo = self.open_repo(project_path)
        worktree_path = self.worktree_path_for(project_path, feature_name)
        branch = self.branch_for(feature_name)

        if worktree_path.exists():
            raise WorktreeError(
                f"Worktree already exists: {worktree_path}",
                context={"worktree_path": str(worktree_path)},
            )

        try:
            repo.git.show_ref("--verify", "--quiet", f"refs/heads/{branch}")
        except GitCommandError:
            pass
        else:
            raise WorktreeError(
                f"Branch already exists: {branch}", context={"branch": branch}
            )

        worktree_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Creating worktree", worktree_path=str(worktree_path), branch=branch
        )

        try:
            repo.git.worktree("add", str(worktree_path), "-b", branch)
        except GitCommandError as e:
            logger.error(
                "Failed to create worktree", worktree_path=str(worktree_path), error=str(e)
            )
            self._cleanup_failed_worktree(repo, worktree_path, branch)
            raise WorktreeError(
                f"Failed to create worktree for feature '{feature_name}': {e}",
                context={"worktree_path": str(worktree_path), "branch": branch},
            ) from e

        logger.info("Created worktree", worktree_path=str(worktree_path), branch=branch)
        return worktree_path

    def stash_changes(self, worktree_path: str | Path) -> bool:
        """Stash uncommitted changes (including untracked files) of a worktree.

        Returns:
            True if something was stashed
        """
        path = Path(worktree_path)
        if not path.exists():
            return False

        try:
            repo = Repo(path)
            if not repo.is_dirty(untracked_files=True):
                return False
            repo.git.stash(
                "push", "--include-untracked", "-m", "Auto-stash before session deletion"
            )
        except (GitCommandError, InvalidGitRepositoryError) as e:
            raise WorktreeError(
                f"Failed to stash changes in {path}: {e}",
                context={"worktree_path": str(path)},
            ) from e

        logger.info("Stashed uncommitted changes", worktree_path=str(path))
        return True

    def remove_worktree(self, project_path: str | Path, feature_name: str) -> bool:
        """Remove a feature worktree and delete its local branch.

        Returns:
            True if a worktree was removed, False if none existed

        Raises:
            WorktreeError: If git refuses to remove the worktree
        """
        repo = self.open_repo(project_path)
        worktree_path = self.worktree_path_for(project_path, feature_name)
        branch = self.branch_for(feature_name)
        removed = False

        if worktree_path.exists():
            logger.info("Removing worktree", worktree_path=str(worktree_path))
            try:
                repo.git.worktree("remove", "--force", str(worktree_path))
            except GitCommandError as e:
                raise WorktreeError(
                    f"Failed to remove worktree {worktree_path}: {e}",
                    context={"worktree_path": str(worktree_path)},
                ) from e

            if worktree_path.exists():
                shutil.rmtree(worktree_path, ignore_errors=True)
            removed = True
        else:
            logger.info(
                "Worktree does not exist, skipping removal",
                worktree_path=str(worktree_path),
            )
            repo.git.worktree("prune")

        try:
            repo.git.branch("-D", branch)
            logger.debug("Deleted local branch", branch=branch)
        except GitCommandError as e:
            if "not found" not in str(e):
                logger.warning("Failed to delete local branch", branch=branch, error=str(e))

        return removed

    def _cleanup_failed_worktree(self, repo: Repo, worktree_path: Path, branch: str) -> None:
        try:
            if worktree_path.exists():
                repo.git.worktree("remove", "--force", str(worktree_path))
        except GitCommandError as e:
            logger.debug("Could not remove partial worktree", error=str(e))
        try:
            repo.git.branch("-D", branch)
        except GitCommandError as e:
            logger.debug("Could not delete partial branch", error=str(e))
