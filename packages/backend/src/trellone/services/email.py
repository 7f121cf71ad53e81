"""Outbound email — verification and password-reset links.

Learn: Delivery goes through the Resend HTTP API with httpx. Sending is
fire-and-forget from the caller's point of view: a failed delivery is
logged and swallowed, and never rolls back the token that was already
persisted on the user (the user can ask for the email again).

The link embedded in each email is `client_url + path + ?token=...`.
"""

from urllib.parse import urlencode

import httpx
import structlog

from trellone.config import settings

logger = structlog.get_logger()

EMAIL_TEMPLATE = """\
<!doctype html>
<html>
  <body>
    <h2>{{title}}</h2>
    <p>{{content}}</p>
    <p><a href="{{link}}">{{title_link}}</a></p>
  </body>
</html>
"""


def render_email(title: str, content: str, title_link: str, link: str) -> str:
    return (
        EMAIL_TEMPLATE.replace("{{title}}", title)
        .replace("{{content}}", content)
        .replace("{{title_link}}", title_link)
        .replace("{{link}}", link)
    )


def client_link(path: str, **params: str) -> str:
    return f"{settings.client_url.rstrip('/')}{path}?{urlencode(params)}"


class EmailSender:
    """Send HTML email via the Resend API."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        from_address: str | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.api_url = api_url or settings.resend_api_url
        self.from_address = from_address or settings.email_from_address
        self.timeout = timeout

    async def send(self, to_address: str, subject: str, html: str) -> bool:
        """Deliver one email. Returns False (and logs) on any failure."""
        if not self.api_key:
            logger.info("email.skipped_no_api_key", to=to_address, subject=subject)
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.from_address,
                        "to": [to_address],
                        "subject": subject,
                        "html": html,
                    },
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "email.delivery_failed", to=to_address, subject=subject, error=str(e)
            )
            return False

        logger.info("email.sent", to=to_address, subject=subject)
        return True

    async def send_verify_register_email(self, to_address: str, token: str) -> bool:
        link = client_link("/account/verification", token=token, email=to_address)
        return await self.send(
            to_address,
            "Confirm your email address",
            render_email(
                "Account registration confirmation",
                f"Hi {to_address},",
                "Confirm your email",
                link,
            ),
        )

    async def send_forgot_password_email(self, to_address: str, token: str) -> bool:
        link = client_link("/forgot-password/verification", token=token)
        return await self.send(
            to_address,
            "Reset your password",
            render_email(
                "Forgot your password?",
                f"Hi {to_address},",
                "Reset your password",
                link,
            ),
        )


_sender = EmailSender()


def get_email_sender() -> EmailSender:
    """FastAPI dependency — the process-wide sender (overridden in tests)."""
    return _sender
