"""Async HTTP client for the transactional email provider."""

from __future__ import annotations

import html
from typing import TYPE_CHECKING, Any

import httpx

from skillset_service.core.exceptions import ServiceError
from skillset_service.logging import get_logger

if TYPE_CHECKING:
    from skillset_service.schemas import ContactRequest


def render_contact_email(form: ContactRequest) -> str:
    """Render the contact form as an HTML email body. All user input is escaped."""
    parts = [
        "<h2>New Contact Form Submission</h2>",
        f"<p><strong>Name:</strong> {html.escape(form.name)}</p>",
        f"<p><strong>Email:</strong> {html.escape(form.email)}</p>",
    ]
    if form.company:
        parts.append(f"<p><strong>Company:</strong> {html.escape(form.company)}</p>")
    parts.append(f"<p><strong>Enquiry Type:</strong> {html.escape(form.enquiryType)}</p>")
    parts.append("<p><strong>Message:</strong></p>")
    parts.append(f"<p>{html.escape(form.message).replace(chr(10), '<br>')}</p>")
    return "\n".join(parts)


class EmailClient:
    """
    Client for a Resend-compatible email API.

    Sends contact form submissions to a fixed inbox with the submitter
    as reply-to address.
    """

    def __init__(
        self,
        base_url: str,
        send_path: str,
        api_key: str,
        from_email: str,
        to_email: str,
        timeout_seconds: int,
    ) -> None:
        self._base_url = base_url
        self._send_path = send_path
        self._from_email = from_email
        self._to_email = to_email
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def send_contact_email(self, form: ContactRequest) -> dict[str, Any]:
        """
        Deliver a contact form submission.

        Returns:
            The provider's response body (contains the message id)

        Raises:
            ServiceError: EMAIL_SERVICE_UNAVAILABLE (502) on connection/timeout errors
            ServiceError: EMAIL_DELIVERY_FAILED (500) when the provider rejects the message
        """
        logger = get_logger(__name__)

        message = {
            "from": self._from_email,
            "to": [self._to_email],
            "subject": f"Skillset Contact: {form.enquiryType} from {form.name}",
            "html": render_contact_email(form),
            "reply_to": form.email,
        }

        try:
            response = await self._client.post(self._send_path, json=message)
        except httpx.HTTPError as exc:
            logger.warning(
                "Email provider request failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="EMAIL_SERVICE_UNAVAILABLE",
                message="Failed to send message. Please try again later.",
                status_code=502,
                details={},
            ) from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = {}

        if response.status_code not in (200, 201):
            provider_message = body.get("message") if isinstance(body, dict) else None
            logger.error(
                "Email provider rejected message",
                extra={"status_code": response.status_code, "provider_message": provider_message},
            )
            raise ServiceError(
                error="EMAIL_DELIVERY_FAILED",
                message=provider_message or "Failed to send email",
                status_code=500,
                details={},
            )

        logger.info(
            "Contact email sent",
            extra={"email_id": body.get("id") if isinstance(body, dict) else None},
        )
        return body if isinstance(body, dict) else {}

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
