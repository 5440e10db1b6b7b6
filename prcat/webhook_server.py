"""FastAPI webhook server for GitHub webhooks."""

import hashlib
import hmac
import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Config
from .events import WebhookPayloadError
from .services.webhook_handler import WebhookHandler

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def verify_github_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw body.

    Args:
        payload: Raw request body bytes, exactly as received
        signature: Header value, ``sha256=<hex digest>``
        secret: Shared webhook secret

    Returns:
        True only when the digest matches
    """
    prefix, _, received = signature.partition("=")
    if f"{prefix}=" != SIGNATURE_PREFIX or not received:
        logger.warning("Malformed webhook signature header (expected sha256=<hex>)")
        return False

    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    if hmac.compare_digest(expected, received):
        return True

    # Digests are only ever logged truncated
    logger.warning(
        f"Webhook signature mismatch: expected {expected[:16]}..., got {received[:16]}..."
    )
    return False


def create_webhook_app(config: Config, webhook_handler: WebhookHandler) -> FastAPI:
    """Create and configure the FastAPI webhook application.

    Args:
        config: Application configuration
        webhook_handler: WebhookHandler instance

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="PR Categorizer Webhooks",
        description="GitHub webhook receiver that mirrors PRs and categorizes them",
        version="1.0.0"
    )

    webhook_secret = None
    if config.github and config.github.webhook_secret:
        webhook_secret = config.github.webhook_secret.get_secret_value()
    else:
        logger.warning("GitHub webhook secret not configured; signatures will not be verified")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "prcat-webhooks"
        }

    @app.post("/webhooks/github")
    async def github_webhook(request: Request) -> JSONResponse:
        """Handle incoming GitHub webhooks.

        Processing runs inline: the response reflects whether dispatch
        succeeded, while categorization outcomes are recorded on the PR.
        """
        body = await request.body()
        signature = request.headers.get("X-Hub-Signature-256", "")
        event_type = request.headers.get("X-GitHub-Event", "")
        delivery_id = request.headers.get("X-GitHub-Delivery", "")

        logger.info(
            f"Received GitHub webhook: event={event_type}, "
            f"delivery_id={delivery_id}"
        )

        if len(body) > config.server.max_payload_bytes:
            logger.warning(f"Rejecting oversized payload ({len(body)} bytes), delivery_id={delivery_id}")
            return JSONResponse({"error": "Payload too large"}, status_code=413)

        # Unsigned deliveries are accepted; only a present, wrong signature is rejected
        if webhook_secret and signature:
            if not verify_github_signature(body, signature, webhook_secret):
                logger.warning(
                    f"Invalid webhook signature for event={event_type}, "
                    f"delivery_id={delivery_id}"
                )
                return JSONResponse({"error": "Invalid signature"}, status_code=403)
        elif webhook_secret:
            logger.warning(f"Unsigned webhook delivery accepted, delivery_id={delivery_id}")

        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Failed to parse webhook payload: {e}")
            return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)

        try:
            await webhook_handler.handle_event(event_type, payload, delivery_id)
        except WebhookPayloadError as e:
            logger.error(f"Invalid {event_type} payload, delivery_id={delivery_id}: {e}")
            return JSONResponse({"error": f"Invalid webhook payload: {e}"}, status_code=400)
        except Exception as e:
            logger.error(
                f"Error processing webhook event {delivery_id}: {e}",
                exc_info=True
            )
            return JSONResponse(
                {"error": f"Failed to process webhook: {e}"},
                status_code=500
            )

        logger.info(f"Processed webhook event={event_type}, delivery_id={delivery_id}")
        return JSONResponse({"success": True}, status_code=200)

    return app
