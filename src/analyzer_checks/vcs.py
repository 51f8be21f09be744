"""Read-only queries against the local git repository of an analyzed project."""

from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from analyzer_checks.errors import ConfigurationError


def _open_repo(path: Path) -> Repo:
    search_from = path if path.is_dir() else path.parent
    try:
        return Repo(search_from, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        msg = f"{path} is not inside a git repository."
        raise ConfigurationError(msg) from exc


def repository_root_for(path: Path) -> Path:
    """Find the top level directory of the git repository containing a path.

    :param path: a file or directory inside the repository
    :return: the absolute, resolved repository root
    :raises ConfigurationError: if the path is not inside a git work tree
    """
    repo = _open_repo(path)
    if repo.working_tree_dir is None:
        msg = f"{path} is inside a bare git repository."
        raise ConfigurationError(msg)
    return Path(repo.working_tree_dir).resolve()


def head_commit_of(directory: Path) -> str:
    """Get the sha of the commit currently checked out in a repository.

    :raises ConfigurationError: if the repository has no commits yet
    """
    repo = _open_repo(directory)
    try:
        return repo.head.commit.hexsha
    except ValueError as exc:
        msg = f"Repository {repo.working_tree_dir or repo.git_dir} has no commits."
        raise ConfigurationError(msg) from exc
