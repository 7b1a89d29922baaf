# autopostr/infrastructure/workflow_client.py
import os
from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

WORKFLOW_TIMEOUT_SECONDS = float(os.getenv("WORKFLOW_TIMEOUT_SECONDS", "15"))
WORKFLOW_PROXY = os.getenv("WORKFLOW_PROXY") or None
WORKFLOW_WEBHOOK_SECRET = os.getenv("WORKFLOW_WEBHOOK_SECRET") or None


class WorkflowWebhookClient:
    """Pushes schedule definitions to the external workflow engine's webhook."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        proxy: Optional[str] = WORKFLOW_PROXY,
        secret: Optional[str] = WORKFLOW_WEBHOOK_SECRET,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else WORKFLOW_TIMEOUT_SECONDS
        self.proxy = proxy
        self.headers = {"X-Webhook-Secret": secret} if secret else {}
        self.transport = transport

    async def post(self, url: str, json: Dict[str, Any]) -> Any:
        """Raises httpx.HTTPError on transport failure or a non-2xx answer; empty bodies come back as None."""
        async with httpx.AsyncClient(proxy=self.proxy, timeout=self.timeout, transport=self.transport) as client:
            r = await client.post(url, json=json, headers=self.headers)
            r.raise_for_status()
        logger.debug("workflow_webhook_delivered", host=r.url.host, status_code=r.status_code)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            return {"raw": r.text[:500]}
