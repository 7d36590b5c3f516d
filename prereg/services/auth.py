"""Magic-link sign-in for pre-registered users.

Only emails already in ``users`` may request a link. Requests go through
the per-email attempt limiter: a lockout is reported without being counted,
any other failure counts toward the lockout, and a sent link clears the
history. The link itself is issued by a GoTrue-compatible provider
(``POST {auth_provider_url}/auth/v1/otp``).
"""

import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from prereg.config import Settings, get_settings
from prereg.services.identity import IdentityService
from prereg.services.rate_limit import AttemptRateLimiter, get_rate_limiter
from prereg.utils.errors import (
    AuthProviderError,
    ErrorCode,
    InvalidCallbackError,
    PreRegError,
    UserNotFoundError,
    ValidationFailedError,
)
from prereg.utils.http_client import AsyncHttpClient, get_http_client
from prereg.utils.messages import get_user_message
from prereg.utils.validation import normalize_email, validate_email

logger = logging.getLogger(__name__)

OTP_PATH = "/auth/v1/otp"


@dataclass(frozen=True)
class MagicLinkResult:
    email: str
    redirect_to: str


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int | None = None


def parse_auth_callback(url: str) -> AuthTokens:
    """Extract the token pair from a magic-link redirect.

    The provider appends ``#access_token=...&refresh_token=...`` to the
    redirect URL; errors arrive as ``#error=...&error_description=...``.

    Raises:
        InvalidCallbackError: no usable token pair in the fragment
    """
    fragment = urlsplit(url).fragment
    params = {key: values[0] for key, values in parse_qs(fragment).items()}

    if "error" in params:
        raise InvalidCallbackError(params.get("error_description") or params["error"])

    access_token = params.get("access_token")
    refresh_token = params.get("refresh_token")
    if not access_token or not refresh_token:
        raise InvalidCallbackError("missing access_token or refresh_token")

    expires_in: int | None = None
    if params.get("expires_in"):
        try:
            expires_in = int(params["expires_in"])
        except ValueError as e:
            raise InvalidCallbackError("expires_in is not an integer") from e

    return AuthTokens(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type=params.get("token_type", "bearer"),
        expires_in=expires_in,
    )


class MagicLinkService:
    """매직 링크 로그인 서비스"""

    def __init__(
        self,
        db: AsyncSession,
        limiter: AttemptRateLimiter | None = None,
        http_client: AsyncHttpClient | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.identity = IdentityService(db)
        self.limiter = limiter or get_rate_limiter()
        self.http_client = http_client
        self.settings = settings or get_settings()

    async def request_magic_link(self, email: str, language: str | None = None) -> MagicLinkResult:
        """Send a sign-in link to a pre-registered email.

        Raises:
            RateLimitExceededError: the email is locked out
            ValidationFailedError: malformed email
            UserNotFoundError: the email never pre-registered
            AuthProviderError: the provider rejected or failed the request
        """
        normalized = normalize_email(email or "")
        await self.limiter.check_rate_limit(normalized)

        try:
            if not validate_email(normalized):
                raise ValidationFailedError(
                    {"email": get_user_message(ErrorCode.INVALID_EMAIL, language)},
                    code=ErrorCode.INVALID_EMAIL,
                )
            if await self.identity.check_email_available(normalized):
                raise UserNotFoundError(normalized)
            redirect_to = await self._send_otp(normalized)
        except PreRegError as e:
            status = await self.limiter.record_attempt(normalized, success=False)
            logger.info(
                "Magic link refused for %s: %s (attempts=%d)",
                normalized, e.code, status.attempts,
            )
            raise

        await self.limiter.record_attempt(normalized, success=True)
        logger.info("Magic link sent to %s", normalized)
        return MagicLinkResult(email=normalized, redirect_to=redirect_to)

    async def _send_otp(self, email: str) -> str:
        if not self.settings.auth_provider_url:
            raise AuthProviderError("Auth provider is not configured")

        redirect_to = self.settings.magic_link_redirect_url
        anon_key = self.settings.auth_provider_anon_key or ""
        client = self.http_client or await get_http_client()
        url = f"{self.settings.auth_provider_url.rstrip('/')}{OTP_PATH}"

        try:
            response = await client.post(
                url,
                params={"redirect_to": redirect_to},
                json={"email": email, "create_user": True},
                headers={"apikey": anon_key, "Authorization": f"Bearer {anon_key}"},
                timeout=self.settings.auth_provider_timeout,
            )
        except httpx.HTTPError as e:
            logger.exception("Auth provider request failed for %s", email)
            raise AuthProviderError("Auth provider unreachable") from e

        if response.status_code >= 400:
            raise AuthProviderError(
                self._provider_message(response),
                status_code=response.status_code,
            )
        return redirect_to

    @staticmethod
    def _provider_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return f"Auth provider returned {response.status_code}"
        if isinstance(payload, dict):
            for key in ("msg", "message", "error_description", "error"):
                if payload.get(key):
                    return str(payload[key])
        return f"Auth provider returned {response.status_code}"
