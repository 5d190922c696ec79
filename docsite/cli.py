"""
cli.py

Responsibility: CLI entrypoint for docsite.

Commands:
- `build`: validate the content tree and render it into `site_dir`
- `serve`: build into a temporary directory and preview it locally
- `check`: run nav/macro/link checks plus the style lint without writing output (CI gate)
- `deploy`: build, then push to the Pages branch (optionally as a named version)
- `versions`: inspect and edit a local checkout of a versioned Pages branch

This module should orchestrate behavior but keep concerns isolated; every failure that
the modules raise ends here as a logged error and exit code 1.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from docsite import __version__
from docsite.build import BuildError, build_site, check_site
from docsite.config import DEFAULT_CONFIG_FILE, ConfigError, SiteConfig, load_config
from docsite.github_client import GitHubClient, GitHubError
from docsite.lint import DEFAULT_STYLEGUIDE, StyleguideError, load_styleguide
from docsite.macros import MacroError
from docsite.nav import NavError
from docsite.pages import PageError
from docsite.publish import PublishError, gh_deploy, tokenized_https_remote
from docsite.redirects import RedirectError
from docsite.render import RenderError
from docsite.serve import serve
from docsite.versions import VersionError, delete_version, list_versions, set_default

logger = logging.getLogger("docsite")


class CLIError(RuntimeError):
    pass


KNOWN_ERRORS = (
    CLIError,
    ConfigError,
    PageError,
    NavError,
    MacroError,
    RedirectError,
    RenderError,
    BuildError,
    StyleguideError,
    VersionError,
    PublishError,
    GitHubError,
)


def _load(args: argparse.Namespace, **overrides: object) -> SiteConfig:
    return load_config(args.config_file, **overrides)


def build_cmd(args: argparse.Namespace) -> int:
    config = _load(args, strict=True if args.strict else None, site_dir=args.site_dir)
    build_site(config, dirty=bool(args.dirty))
    return 0


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise CLIError(f"Invalid address {address!r}; expected HOST:PORT")
    return host or "127.0.0.1", int(port)


def serve_cmd(args: argparse.Namespace) -> int:
    config = _load(args, strict=True if args.strict else None)
    host, port = _parse_address(args.dev_addr)
    serve(config, host, port, watch=not bool(args.no_watch), strict=True if args.strict else None)
    return 0


def check_cmd(args: argparse.Namespace) -> int:
    config = _load(args)
    guide_path = Path(args.styleguide) if args.styleguide else config.config_path.parent / DEFAULT_STYLEGUIDE
    guide = None
    if guide_path.exists():
        guide = load_styleguide(guide_path)
    elif args.styleguide:
        raise CLIError(f"Styleguide file does not exist: {guide_path}")
    else:
        logger.info("No %s found; skipping style lint", DEFAULT_STYLEGUIDE)

    result = check_site(config, guide)
    for issue in [*result.link_issues, *result.lint_issues]:
        logger.error("%s", issue)
    if not result.ok:
        logger.error(
            "Check failed: %d link issue(s), %d lint issue(s)",
            len(result.link_issues),
            len(result.lint_issues),
        )
        return 1
    logger.info("All checks passed")
    return 0


def deploy_cmd(args: argparse.Namespace) -> int:
    config = _load(args, strict=True if args.strict else None)
    publish = config.publish

    remote_url: str | None = None
    client: GitHubClient | None = None
    if args.github_owner or args.github_repo or args.configure_pages:
        if not (args.github_owner and args.github_repo):
            raise CLIError("--github-owner and --github-repo must be given together")
        token = args.github_token or os.environ.get("GITHUB_TOKEN") or ""
        if not token:
            raise CLIError("GitHub token is required (use --github-token or set GITHUB_TOKEN)")
        client = GitHubClient(token)
        repo = client.get_repo(args.github_owner, args.github_repo)
        if repo is None:
            raise CLIError(f"Repository not found: {args.github_owner}/{args.github_repo}")
        remote_url = tokenized_https_remote(repo.clone_url, token)

    build_site(config)

    branch = args.branch or publish.branch
    cname = args.cname or publish.cname
    sha = gh_deploy(
        config.site_dir,
        repo_dir=config.config_path.parent,
        remote=args.remote or publish.remote,
        branch=branch,
        message=args.message or publish.message,
        cname=cname,
        version=args.version,
        title=args.title,
        aliases=args.alias or (),
        update_aliases=bool(args.update_aliases),
        make_default=bool(args.set_default),
        remote_url=remote_url,
        push=not bool(args.no_push),
        deterministic_git=bool(args.deterministic_git),
    )
    if sha is not None:
        logger.info("Deployed commit %s", sha)

    if client is not None and args.configure_pages:
        pages = client.configure_pages(args.github_owner, args.github_repo, branch=branch, cname=cname)
        logger.info("GitHub Pages serves %s from %s", pages.url or "(pending)", pages.branch)
    return 0


def versions_list_cmd(args: argparse.Namespace) -> int:
    for info in list_versions(args.publish_dir):
        aliases = f" [{', '.join(info.aliases)}]" if info.aliases else ""
        print(f"{info.version}  {info.title}{aliases}")
    return 0


def versions_delete_cmd(args: argparse.Namespace) -> int:
    for name in args.names:
        delete_version(args.publish_dir, name)
    return 0


def versions_default_cmd(args: argparse.Namespace) -> int:
    set_default(args.publish_dir, args.name)
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-f",
        "--config-file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Site configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    p.add_argument("-s", "--strict", action="store_true", help="Fail on broken internal links")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="docsite", description="docsite - build and publish the standards documentation site")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show warnings and errors")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Build the documentation site")
    _add_common(b)
    b.add_argument("-d", "--site-dir", default=None, help="Output directory (overrides site_dir)")
    b.add_argument("--dirty", action="store_true", help="Do not clean site_dir before building")
    b.set_defaults(func=build_cmd)

    s = sub.add_parser("serve", help="Preview the site with automatic rebuilds")
    _add_common(s)
    s.add_argument("-a", "--dev-addr", default="127.0.0.1:8000", help="HOST:PORT to listen on")
    s.add_argument("--no-watch", action="store_true", help="Do not rebuild on changes")
    s.set_defaults(func=serve_cmd)

    c = sub.add_parser("check", help="Validate nav, links and style without building")
    c.add_argument("-f", "--config-file", default=DEFAULT_CONFIG_FILE, help="Site configuration file")
    c.add_argument("--styleguide", default=None, help=f"Styleguide file (default: {DEFAULT_STYLEGUIDE} if present)")
    c.set_defaults(func=check_cmd)

    d = sub.add_parser("deploy", help="Build and push the site to the Pages branch")
    _add_common(d)
    d.add_argument("--remote", default=None, help="Git remote name or URL (overrides publish.remote)")
    d.add_argument("--branch", default=None, help="Pages branch (overrides publish.branch)")
    d.add_argument("-m", "--message", default=None, help="Commit message")
    d.add_argument("--cname", default=None, help="Custom domain written to CNAME")
    d.add_argument("--version", dest="version", default=None, help="Deploy as this named version")
    d.add_argument("--title", default=None, help="Display title for the version")
    d.add_argument("--alias", action="append", default=None, help="Alias for the version (repeatable)")
    d.add_argument("--update-aliases", action="store_true", help="Move aliases owned by other versions")
    d.add_argument("--set-default", action="store_true", help="Redirect the site root to this version")
    d.add_argument("--no-push", action="store_true", help="Commit but do not push")
    d.add_argument("--github-owner", default=None, help="GitHub owner (user or org)")
    d.add_argument("--github-repo", default=None, help="GitHub repository name")
    d.add_argument("--github-token", default=None, help="GitHub token (or set env GITHUB_TOKEN)")
    d.add_argument("--configure-pages", action="store_true", help="Point GitHub Pages at the deploy branch")
    d.add_argument(
        "--deterministic-git",
        action="store_true",
        default=True,
        help="Use deterministic git author/commit timestamps (default: enabled)",
    )
    d.add_argument(
        "--no-deterministic-git",
        dest="deterministic_git",
        action="store_false",
        help="Disable deterministic git commit timestamps",
    )
    d.set_defaults(func=deploy_cmd)

    v = sub.add_parser("versions", help="Manage versions in a local checkout of the Pages branch")
    vsub = v.add_subparsers(dest="versions_command", required=True)
    vl = vsub.add_parser("list", help="List deployed versions")
    vl.add_argument("publish_dir")
    vl.set_defaults(func=versions_list_cmd)
    vd = vsub.add_parser("delete", help="Delete versions or aliases")
    vd.add_argument("publish_dir")
    vd.add_argument("names", nargs="+")
    vd.set_defaults(func=versions_delete_cmd)
    vs = vsub.add_parser("set-default", help="Redirect the root to a version or alias")
    vs.add_argument("publish_dir")
    vs.add_argument("name")
    vs.set_defaults(func=versions_default_cmd)

    return p


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)-7s - %(message)s")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)
    try:
        return int(args.func(args))
    except KNOWN_ERRORS as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
