"""Async GitHub REST client covering the calls gh-stats needs."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from ..config import DEFAULT_API_BASE
from ..errors import GitHubAPIError
from ..models import Identity, LanguageBytes, RepoSummary
from .rate_limit import RateLimitMonitor

logger = logging.getLogger(__name__)

_NEXT_LINK = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


def parse_next_link(link_header: str | None) -> str | None:
    if not link_header:
        return None
    for part in link_header.split(","):
        match = _NEXT_LINK.search(part)
        if match and match.group(2) == "next":
            return match.group(1)
    return None


def noreply_emails(login: str, user_id: int | None) -> list[str]:
    emails = [f"{login}@users.noreply.github.com"]
    if user_id is not None:
        emails.insert(0, f"{user_id}+{login}@users.noreply.github.com")
    return emails


class GitHubClient:
    """Thin wrapper over ``httpx.AsyncClient``; use as an async context manager."""

    def __init__(
        self,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self.rate_limit = RateLimitMonitor()

    async def __aenter__(self) -> GitHubClient:
        self._client = httpx.AsyncClient(
            base_url=self._api_base,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "User-Agent": "gh-stats",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        return False

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("GitHubClient must be used as an async context manager")
        await self.rate_limit.wait_if_needed()
        response = await self._client.get(url, params=params)
        self.rate_limit.update(response)
        if response.status_code >= 400:
            raise GitHubAPIError(response.status_code, response.text, str(response.url))
        return response

    async def _paginate(self, url: str, params: dict[str, Any] | None = None) -> list[Any]:
        items: list[Any] = []
        next_url: str | None = url
        while next_url:
            response = await self._get(next_url, params=params)
            items.extend(response.json())
            next_url = parse_next_link(response.headers.get("link"))
            # the next link already carries the query string
            params = None
        return items

    async def list_repos(
        self, include_forks: bool = False, include_archived: bool = True
    ) -> list[RepoSummary]:
        """All repositories visible to the token, forks/archived filtered."""
        raw = await self._paginate(
            "/user/repos",
            params={
                "per_page": 100,
                "visibility": "all",
                "affiliation": "owner,collaborator,organization_member",
            },
        )
        repos = [RepoSummary.from_api(item) for item in raw]
        return [
            r
            for r in repos
            if (include_forks or not r.fork) and (include_archived or not r.archived)
        ]

    async def get_languages(self, languages_url: str) -> LanguageBytes:
        response = await self._get(languages_url)
        data = response.json()
        return {k: v for k, v in data.items() if isinstance(v, int) and not isinstance(v, bool)}

    async def get_authenticated_identity(self) -> Identity:
        """Login plus verified and no-reply emails of the token owner."""
        user = (await self._get("/user")).json()
        login = user.get("login")
        if not login:
            raise GitHubAPIError(200, "response did not include a login", "/user")

        emails: list[str] = []
        if user.get("email"):
            emails.append(user["email"])
        try:
            for entry in (await self._get("/user/emails")).json():
                if entry.get("verified") and entry.get("email"):
                    emails.append(entry["email"])
        except GitHubAPIError as exc:
            # tokens without the user:email scope get 403/404 here
            logger.debug("could not list emails for %s: %s", login, exc)
        emails.extend(noreply_emails(login, user.get("id")))

        unique = tuple(dict.fromkeys(e.lower() for e in emails))
        return Identity(login=login, emails=unique)

    async def repo_has_recent_author_commit(
        self, full_name: str, since_iso: str, author: str
    ) -> bool:
        try:
            response = await self._get(
                f"/repos/{full_name}/commits",
                params={"since": since_iso, "author": author, "per_page": 1},
            )
        except GitHubAPIError as exc:
            # 409: empty repository; 404/422: unknown author or no access
            if exc.status_code in (404, 409, 422):
                return False
            raise
        return len(response.json()) > 0
