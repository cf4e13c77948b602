"""ZeptoMail implementation of EmailProvider.

Sends transactional mail through the ZeptoMail HTTP API using the shared
async HttpClient. OTP emails are rendered from Jinja2 templates.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

_OTP_SUBJECTS = {
    "email_verify": "Email Verification OTP",
    "password_reset": "Password Reset OTP",
}
_OTP_HEADINGS = {
    "email_verify": "Verify your email",
    "password_reset": "Reset your password",
}


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "Media Share",
        otp_ttl_minutes: int = 5,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._otp_ttl_minutes = otp_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def send(
        self, to_address: str, subject: str, plain_body: str, html_body: str
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": to_address}}],
            "subject": subject,
            "htmlbody": html_body,
            "textbody": plain_body,
        }

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", to_email=to_address, subject=subject)
                return True
            log.error(
                "email_sent_failed",
                to_email=to_address,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_address,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def render_otp_email(
        self, name: Optional[str], otp_code: str, purpose: str
    ) -> tuple[str, str, str]:
        """Return ``(subject, plain_body, html_body)`` for an OTP email."""
        subject = f"{_OTP_SUBJECTS.get(purpose, 'Your one-time code')} - {self._app_name}"
        html_body = self._jinja.get_template("otp.html").render(
            name=name,
            otp_code=otp_code,
            heading=_OTP_HEADINGS.get(purpose, "OTP Verification"),
            ttl_minutes=self._otp_ttl_minutes,
            app_name=self._app_name,
        )
        plain_body = (
            f"Hello{f' {name}' if name else ''},\n\n"
            f"Here is your OTP: {otp_code}\n"
            f"This OTP will expire in {self._otp_ttl_minutes} minutes.\n\n"
            f"If you did not request this, please ignore this email."
        )
        return subject, plain_body, html_body

    async def send_otp_email(
        self, email: str, name: Optional[str], otp_code: str, purpose: str
    ) -> bool:
        subject, plain_body, html_body = self.render_otp_email(name, otp_code, purpose)
        return await self.send(email, subject, plain_body, html_body)
