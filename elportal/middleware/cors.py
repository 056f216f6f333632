"""Per-path CORS headers and preflight handling."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from elportal.config import settings


@dataclass(frozen=True)
class CORSPolicy:
    """
    CORS headers for a group of endpoints.

    Attributes:
        path_prefix: Request paths starting with this prefix use the policy
        methods: Value of Access-Control-Allow-Methods
        headers: Value of Access-Control-Allow-Headers
        credentials: Reflect the request Origin and allow credentials instead
            of answering with ``*``
    """

    path_prefix: str
    methods: str
    headers: str = "Content-Type"
    credentials: bool = False

    def headers_for(self, request: Request) -> dict[str, str]:
        if self.credentials:
            origin = request.headers.get("origin") or settings.site_url
            return {
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Allow-Methods": self.methods,
                "Access-Control-Allow-Headers": self.headers,
                "Vary": "Origin",
            }
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": self.methods,
            "Access-Control-Allow-Headers": self.headers,
        }


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """
    Apply the first matching :class:`CORSPolicy` to every response.

    ``OPTIONS`` requests on a covered path are answered directly with an
    empty ``200``. Error responses get the headers too, so browsers can read
    4xx bodies from cross-origin callers.
    """

    def __init__(self, app: ASGIApp, policies: Sequence[CORSPolicy]) -> None:
        super().__init__(app)
        self.policies = list(policies)

    def _match(self, path: str) -> CORSPolicy | None:
        for policy in self.policies:
            if path.startswith(policy.path_prefix):
                return policy
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        policy = self._match(request.url.path)
        if policy is None:
            return await call_next(request)

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=policy.headers_for(request))

        response = await call_next(request)
        for key, value in policy.headers_for(request).items():
            response.headers[key] = value
        return response


PUBLIC_TRACKING_POLICIES = [
    CORSPolicy(path_prefix="/api/track-click", methods="POST, OPTIONS"),
    CORSPolicy(
        path_prefix="/api/track-conversion",
        methods="POST, OPTIONS",
        headers="Content-Type, X-Webhook-Secret",
    ),
    CORSPolicy(path_prefix="/api/tracking/pixel", methods="GET, POST, OPTIONS"),
]

CONSUMPTION_POLICY = CORSPolicy(
    path_prefix="/api/eloverblik",
    methods="POST, OPTIONS",
    headers=(
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, "
        "Content-Length, Content-MD5, Content-Type, Date, X-Api-Version"
    ),
    credentials=True,
)
