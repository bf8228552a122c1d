"""
Easebuzz payment gateway client.

Initiation is a form-encoded POST to ``/payment/initiateLink``; a response
with ``status == 1`` carries the access key in ``data`` and the payer is sent
to ``/pay/<access key>``. No retries here: the client retries initiation.
"""

import json
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import httpx

from confportal.config import Settings
from confportal.kernel.errors import GatewayError
from confportal.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class GatewaySession:
    """An initiated payment the payer can be redirected to."""
    access_key: str
    payment_url: str


class PaymentGateway(Protocol):
    """Initiates a signed payment and returns where to send the payer."""

    async def initiate(self, form: Dict[str, str]) -> GatewaySession:
        ...


class EasebuzzGateway:
    """PaymentGateway speaking the Easebuzz initiateLink protocol."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = settings.easebuzz_base_url
        self.timeout = settings.gateway_timeout_seconds
        self._client = client

    async def initiate(self, form: Dict[str, str]) -> GatewaySession:
        url = f"{self.base_url}/payment/initiateLink"
        try:
            if self._client is not None:
                response = await self._client.post(url, data=form, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, data=form, timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.error(
                "Gateway request failed",
                extra={"txn_id": form.get("txnid"), "error": str(exc)},
            )
            raise GatewayError() from exc

        body = self._parse_body(response)
        if response.status_code != 200 or str(body.get("status")) != "1" or not body.get("data"):
            logger.error(
                "Gateway rejected initiation",
                extra={
                    "txn_id": form.get("txnid"),
                    "http_status": response.status_code,
                    "gateway_message": body.get("message") or body.get("error_desc"),
                },
            )
            raise GatewayError()

        access_key = str(body["data"])
        return GatewaySession(
            access_key=access_key,
            payment_url=f"{self.base_url}/pay/{access_key}",
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict:
        # The gateway does not always send a JSON content type
        try:
            body = json.loads(response.text)
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
