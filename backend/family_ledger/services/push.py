"""Push delivery sinks.

The fan-out engine talks to a sink through ``send`` only. Delivery is
best-effort: a sink either returns a ``DeliveryResult`` or raises
``PushDeliveryError``, and the caller decides what that means.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import httpx

from family_ledger.config import settings

logger = logging.getLogger(__name__)


class PushDeliveryError(RuntimeError):
    pass


@dataclass
class DeliveryResult:
    delivered: bool
    recipient_count: int
    provider_errors: list[str] = field(default_factory=list)


class PushSink(Protocol):
    def send(self, recipient_ids: Sequence[str], title: str, body: str) -> DeliveryResult:
        ...


class LogPushSink:
    """Development sink: writes the push to the log instead of a provider."""

    def send(self, recipient_ids: Sequence[str], title: str, body: str) -> DeliveryResult:
        logger.info("Push '%s' to %d user(s): %s", title, len(recipient_ids), body)
        return DeliveryResult(delivered=True, recipient_count=len(recipient_ids))


class OneSignalPushSink:
    """Targets users by external id through the OneSignal notifications API."""

    def __init__(
        self,
        app_id: str,
        api_key: str,
        api_url: str = "https://api.onesignal.com/notifications",
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._app_id = app_id
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    def _payload(self, recipient_ids: Sequence[str], title: str, body: str) -> dict:
        return {
            "app_id": self._app_id,
            "headings": {"en": title},
            "contents": {"en": body},
            "include_aliases": {"external_id": list(recipient_ids)},
            "target_channel": "push",
        }

    def send(self, recipient_ids: Sequence[str], title: str, body: str) -> DeliveryResult:
        headers = {"Authorization": f"Key {self._api_key}"}
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._api_url, json=self._payload(recipient_ids, title, body), headers=headers
                )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise PushDeliveryError(f"OneSignal request timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text
            logger.error("OneSignal API error (%s): %s", exc.response.status_code, detail)
            raise PushDeliveryError(
                f"OneSignal responded with {exc.response.status_code}: {detail}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PushDeliveryError(f"OneSignal request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            raise PushDeliveryError("Unexpected response from OneSignal API (non-JSON).") from None
        if not isinstance(data, dict):
            raise PushDeliveryError("Unexpected response from OneSignal API")

        errors = _normalize_errors(data.get("errors"))
        if not data.get("id") and not errors:
            errors = ["OneSignal returned no notification id"]
        return DeliveryResult(
            delivered=not errors,
            recipient_count=int(data.get("recipients") or (0 if errors else len(recipient_ids))),
            provider_errors=errors,
        )


def _normalize_errors(errors) -> list[str]:
    # OneSignal reports errors either as a list of strings or as a mapping
    if not errors:
        return []
    if isinstance(errors, dict):
        return [f"{key}: {value}" for key, value in errors.items()]
    if isinstance(errors, (list, tuple)):
        return [str(item) for item in errors]
    return [str(errors)]


def get_push_sink() -> PushSink:
    """FastAPI dependency selecting the configured sink."""
    if settings.push_is_configured:
        return OneSignalPushSink(
            app_id=settings.ONESIGNAL_APP_ID,
            api_key=settings.ONESIGNAL_API_KEY,
            api_url=settings.ONESIGNAL_API_URL,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )
    return LogPushSink()
