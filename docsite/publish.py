"""
publish.py

Responsibility: Push a built site to a static-hosting branch (GitHub Pages by default).

High-level flow of `gh_deploy`:
1) Check out the Pages branch into a temporary directory (clone, or start an orphan branch)
2) Replace its contents with the site, or add the site as a named version
3) Write `.nojekyll` and `CNAME`, commit, push

Only git is used here; repository settings go through `github_client.py`.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

from docsite import versions

logger = logging.getLogger(__name__)


class PublishError(RuntimeError):
    pass


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    """
    Run a subprocess command, raising a PublishError on failure. Returns stdout.
    """
    try:
        proc = subprocess.run(
            cmd, cwd=str(cwd), env=env, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True
        )
    except FileNotFoundError as e:
        raise PublishError(f"Command not found: {cmd[0]}") from e
    except subprocess.CalledProcessError as e:
        raise PublishError(f"Command failed: {' '.join(cmd)}\n\n{e.stdout}") from e
    return proc.stdout


def git_env(base_env: dict[str, str], *, deterministic: bool) -> dict[str, str]:
    """
    Commit metadata for deploy commits. With `deterministic`, identical site content
    produces identical commits regardless of who or when.
    """
    env = dict(base_env)
    env.setdefault("GIT_AUTHOR_NAME", "docsite")
    env.setdefault("GIT_AUTHOR_EMAIL", "docsite@example.invalid")
    env.setdefault("GIT_COMMITTER_NAME", "docsite")
    env.setdefault("GIT_COMMITTER_EMAIL", "docsite@example.invalid")
    if deterministic:
        env.setdefault("GIT_AUTHOR_DATE", "1970-01-01T00:00:00Z")
        env.setdefault("GIT_COMMITTER_DATE", "1970-01-01T00:00:00Z")
    return env


def tokenized_https_remote(clone_url: str, token: str) -> str:
    """
    Convert https://github.com/owner/name.git into an HTTPS URL containing a token.

    The URL is only used for a single push from a throwaway checkout, so the token is
    never written to the project's own `.git/config`.
    """
    # GitHub supports x-access-token in the username position.
    return clone_url.replace("https://", f"https://x-access-token:{token}@", 1)


def resolve_remote_url(remote: str, *, repo_dir: Path) -> str:
    """Accept a URL, a local path, or the name of a remote configured in repo_dir."""
    if "://" in remote or remote.startswith("git@") or Path(remote).exists():
        return remote
    return _run(["git", "remote", "get-url", remote], cwd=repo_dir).strip()


def remote_branch_exists(url: str, branch: str, *, cwd: Path) -> bool:
    out = _run(["git", "ls-remote", "--heads", url, branch], cwd=cwd)
    return bool(out.strip())


def _checkout(url: str, branch: str, workdir: Path, env: dict[str, str]) -> None:
    if remote_branch_exists(url, branch, cwd=workdir.parent):
        _run(
            ["git", "clone", "--quiet", "--branch", branch, "--single-branch", "--depth", "1", url, str(workdir)],
            cwd=workdir.parent,
            env=env,
        )
        return
    logger.info("Branch %s does not exist yet; creating it", branch)
    workdir.mkdir()
    _run(["git", "init", "--quiet"], cwd=workdir, env=env)
    _run(["git", "symbolic-ref", "HEAD", f"refs/heads/{branch}"], cwd=workdir, env=env)


def _replace_contents(site_dir: Path, workdir: Path) -> None:
    for child in workdir.iterdir():
        if child.name == ".git":
            continue
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
    shutil.copytree(site_dir, workdir, dirs_exist_ok=True)


def gh_deploy(
    site_dir: str | Path,
    *,
    repo_dir: str | Path = ".",
    remote: str = "origin",
    branch: str = "gh-pages",
    message: str = "Deploy documentation",
    cname: str | None = None,
    version: str | None = None,
    title: str | None = None,
    aliases: tuple[str, ...] | list[str] = (),
    update_aliases: bool = False,
    make_default: bool = False,
    remote_url: str | None = None,
    push: bool = True,
    deterministic_git: bool = True,
) -> str | None:
    """
    Commit the site to `branch` and push it. Returns the new commit SHA, or None when the
    branch already had identical content.
    """
    site = Path(site_dir).resolve()
    if not site.is_dir():
        raise PublishError(f"Built site not found: {site} (run `docsite build` first)")
    repo = Path(repo_dir).resolve()
    url = remote_url or resolve_remote_url(remote, repo_dir=repo)
    env = git_env(os.environ.copy(), deterministic=deterministic_git)

    with tempfile.TemporaryDirectory(prefix="docsite-deploy-") as tmp:
        workdir = Path(tmp) / "pages"
        _checkout(url, branch, workdir, env)

        if version is None:
            _replace_contents(site, workdir)
        else:
            versions.deploy_version(
                site, workdir, version, title=title, aliases=aliases, update_aliases=update_aliases
            )
            if make_default:
                versions.set_default(workdir, version)

        (workdir / ".nojekyll").write_text("", encoding="utf-8")
        if cname:
            (workdir / "CNAME").write_text(cname.strip() + "\n", encoding="utf-8")

        _run(["git", "add", "-A"], cwd=workdir, env=env)
        if not _run(["git", "status", "--porcelain"], cwd=workdir, env=env).strip():
            logger.info("Nothing to deploy: %s is already up to date", branch)
            return None
        _run(["git", "commit", "--quiet", "-m", message], cwd=workdir, env=env)
        sha = _run(["git", "rev-parse", "HEAD"], cwd=workdir, env=env).strip()

        if push:
            _run(["git", "push", "--quiet", url, f"HEAD:refs/heads/{branch}"], cwd=workdir, env=env)
            logger.info("Pushed %s to %s", sha[:12], branch)
        return sha
