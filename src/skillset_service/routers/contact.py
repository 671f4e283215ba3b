"""Contact form endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from skillset_service.core.state import get_app_state
from skillset_service.routers.validation import read_model
from skillset_service.schemas import ContactRequest

router = APIRouter()


@router.post("/api/contact")
async def submit_contact(request: Request) -> dict[str, Any]:
    """Relay a contact form submission to the team inbox."""
    body = await request.body()
    form = read_model(body, ContactRequest)

    state = get_app_state()
    if state.email_client is None:
        msg = "EmailClient not initialized"
        raise RuntimeError(msg)

    await state.email_client.send_contact_email(form)
    return {"success": True, "message": "Your message has been sent successfully"}
