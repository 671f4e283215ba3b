"""HTTP clients for external integrations and upload URL signing."""

from skillset_service.clients.email_client import EmailClient
from skillset_service.clients.price_client import PriceClient
from skillset_service.clients.upload_url_signer import UploadUrlSigner

__all__ = ["EmailClient", "PriceClient", "UploadUrlSigner"]
