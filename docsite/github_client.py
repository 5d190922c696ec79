"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com
- Interprets GitHub API responses / error payloads

Publishing itself is plain git (see `publish.py`); the API is only used to look up the
repository and to point GitHub Pages at the deploy branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests


class GitHubError(RuntimeError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    name: str
    html_url: str
    clone_url: str
    default_branch: str


@dataclass(frozen=True)
class PagesInfo:
    url: str
    branch: str
    path: str
    cname: str | None = None


class GitHubClient:
    def __init__(self, token: str, api_base: str = "https://api.github.com") -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self._token = token
        self._api_base = api_base.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "docsite",
        }

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_base}{path}"
        try:
            r = requests.request(method, url, headers=self._headers(), json=json_body, timeout=30)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub API request failed {method} {path}: {e}") from e
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            message = payload.get("message", payload) if isinstance(payload, dict) else payload
            raise GitHubError(f"GitHub API error {r.status_code} {method} {path}: {message}", r.status_code)
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    def get_repo(self, owner: str, name: str) -> RepoInfo | None:
        """
        Return RepoInfo if the repo exists and is accessible; otherwise None.
        """
        try:
            data = self._request("GET", f"/repos/{owner}/{name}")
        except GitHubError as e:
            if e.status == 404:
                return None
            raise
        return RepoInfo(
            owner=owner,
            name=name,
            html_url=data["html_url"],
            clone_url=data["clone_url"],
            default_branch=data.get("default_branch") or "main",
        )

    def get_pages(self, owner: str, name: str) -> PagesInfo | None:
        """Return the Pages configuration, or None when Pages is not enabled."""
        try:
            data = self._request("GET", f"/repos/{owner}/{name}/pages")
        except GitHubError as e:
            if e.status == 404:
                return None
            raise
        source = data.get("source") or {}
        return PagesInfo(
            url=data.get("html_url") or "",
            branch=source.get("branch") or "",
            path=source.get("path") or "/",
            cname=data.get("cname"),
        )

    def configure_pages(
        self,
        owner: str,
        name: str,
        *,
        branch: str,
        path: str = "/",
        cname: str | None = None,
    ) -> PagesInfo:
        """
        Serve Pages from `branch`/`path`, enabling Pages first if needed.
        Returns the resulting configuration.
        """
        source = {"branch": branch, "path": path}
        current = self.get_pages(owner, name)
        if current is None:
            self._request("POST", f"/repos/{owner}/{name}/pages", json_body={"source": source})
        elif (current.branch, current.path, current.cname) == (branch, path, cname):
            return current

        body: dict[str, Any] = {"source": source}
        if cname is not None:
            body["cname"] = cname
        self._request("PUT", f"/repos/{owner}/{name}/pages", json_body=body)
        pages = self.get_pages(owner, name)
        if pages is None:
            raise GitHubError(f"Pages is still not enabled for {owner}/{name}.")
        return pages
