"""Test helpers shared across modules"""

import base64
import json
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import aiohttp
import httpx


TOKEN_URL = "https://auth.example.com/oauth/token"


def make_jwt(payload: Dict[str, Any]) -> str:
    """Unsigned JWT carrying ``payload``"""
    def encode(part: Dict[str, Any]) -> str:
        raw = json.dumps(part).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{encode({'alg': 'none', 'typ': 'JWT'})}.{encode(payload)}.signature"


class FakeTokenEndpoint:
    """Token endpoint answering each grant type with a configurable response"""

    def __init__(self, exchange: Dict[str, Any], refresh: Dict[str, Any]):
        # grant_type -> (status code, JSON body)
        self.responses = {
            "authorization_code": (200, exchange),
            "refresh_token": (200, refresh),
        }
        self.requests: List[Dict[str, str]] = []
        # Called with the form of each request before it is answered
        self.on_request: Optional[Callable[[Dict[str, str]], None]] = None

    def handle(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}
        self.requests.append(form)
        if self.on_request is not None:
            self.on_request(form)
        status_code, body = self.responses[form["grant_type"]]
        return httpx.Response(status_code, json=body)

    def grants(self, grant_type: str) -> List[Dict[str, str]]:
        return [form for form in self.requests if form["grant_type"] == grant_type]


class FakeBrowser:
    """Browser opener that follows the authorization URL straight to the redirect

    ``overrides`` replaces query parameters of the redirect; a value of
    None removes the parameter. With ``redirect=False`` the browser only
    records the URL, as if the user never finished the login.
    """

    def __init__(self, overrides: Optional[Dict[str, Optional[str]]] = None, redirect: bool = True):
        self.overrides = overrides or {}
        self.redirect = redirect
        self.opened: List[str] = []
        self.responses: List[int] = []

    @property
    def last_params(self) -> Dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlparse(self.opened[-1]).query).items()}

    @property
    def callback_port(self) -> int:
        return urlparse(self.last_params["redirect_uri"]).port

    async def open(self, url: str) -> bool:
        self.opened.append(url)
        if not self.redirect:
            return True

        params = self.last_params
        query = {"code": "test-code", "state": params["state"]}
        query.update(self.overrides)
        query = {k: v for k, v in query.items() if v is not None}

        async with aiohttp.ClientSession() as session:
            async with session.get(params["redirect_uri"], params=query) as response:
                await response.text()
                self.responses.append(response.status)
        return True
