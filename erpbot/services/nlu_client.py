"""
Rasa NLU client.

Posts the message to the REST channel webhook first. When the webhook
returns no classified result, falls back to the ``/model/parse`` endpoint and
wraps its bare object in the webhook's list shape. Every call carries a
fixed timeout; timeouts, transport errors and HTTP errors raise NLUError,
which the message handler treats as "no usable intent".
"""

import logging
from typing import Any, Optional

import httpx

from erpbot.config import settings
from erpbot.nlu.parser import normalize_nlu_response

logger = logging.getLogger(__name__)


class NLUError(Exception):
    """Raised when Rasa cannot be reached or answers with an error."""


def _carries_intent(webhook_data: Any) -> bool:
    # Plain bot utterances ({"recipient_id", "text"}) carry no classification.
    return (
        isinstance(webhook_data, list)
        and bool(webhook_data)
        and isinstance(webhook_data[0], dict)
        and "intent" in webhook_data[0]
    )


class RasaClient:
    """Async client for the Rasa REST webhook and parse endpoints."""

    def __init__(
        self,
        rasa_url: str = settings.nlu.rasa_url,
        webhook_path: str = settings.nlu.webhook_path,
        timeout_sec: float = settings.nlu.timeout_sec,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rasa_url = rasa_url.rstrip("/")
        self.webhook_path = webhook_path
        self._client = httpx.AsyncClient(
            base_url=self.rasa_url,
            timeout=timeout_sec,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        response = await self._client.post(path, json=payload)
        response.raise_for_status()
        return response.json()

    async def parse_message(self, text: str, session_id: str = "telegram_user") -> dict[str, Any]:
        """Classify a message and return a normalized ``{intent, entities, text}`` dict."""
        try:
            webhook_data = await self._post(
                self.webhook_path, {"sender": session_id, "message": text}
            )
            if _carries_intent(webhook_data):
                return normalize_nlu_response(webhook_data)

            parse_data = await self._post("/model/parse", {"text": text})
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error communicating with Rasa: %s", exc)
            raise NLUError(f"Failed to get response from Rasa: {exc}") from exc

        if not isinstance(parse_data, dict):
            return normalize_nlu_response([])
        return normalize_nlu_response(
            [
                {
                    "intent": parse_data.get("intent"),
                    "entities": parse_data.get("entities") or [],
                    "text": parse_data.get("text") or text,
                }
            ]
        )

    async def aclose(self) -> None:
        await self._client.aclose()
