"""EmailProvider protocol — services depend on this, not the concrete implementation."""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send(
        self, to_address: str, subject: str, plain_body: str, html_body: str
    ) -> bool: ...

    async def send_otp_email(
        self, email: str, name: Optional[str], otp_code: str, purpose: str
    ) -> bool: ...
