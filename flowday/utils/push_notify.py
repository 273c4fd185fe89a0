import httpx
import uuid
import logging
from typing import Optional, Dict, Any

from flowday.schemas import PermissionState

logger = logging.getLogger("push_notify")

NOTIFICATION_ICON = "/favicon.ico"
AUTO_CLOSE_MS = 5000


class WebhookNotificationHost:
    """Native notification channel delivered as JSON-RPC 2.0 calls to a push webhook.

    The receiving end (a browser extension, desktop agent or relay) owns the
    permission prompt and answers ``notifications/requestPermission`` with the
    user's decision.
    """

    def __init__(
        self,
        push_url: Optional[str],
        push_token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.push_url = (push_url or "").strip() or None
        self.push_token = push_token
        self.timeout = timeout
        self._transport = transport
        self._permission = PermissionState.default

    def is_supported(self) -> bool:
        return self.push_url is not None

    def permission_state(self) -> PermissionState:
        return self._permission

    async def request_permission(self) -> PermissionState:
        """Ask the receiver for permission. HTTP failures propagate to the caller."""
        if not self.push_url:
            raise RuntimeError("No push URL configured")

        body = await self._call("notifications/requestPermission", {"app": "FlowDay"})
        result = body.get("result") if isinstance(body, dict) else None
        raw = result.get("permission") if isinstance(result, dict) else None
        self._permission = _parse_permission(raw)
        logger.info("Push permission answer: %s", self._permission.value)
        return self._permission

    async def show(self, title: str, body: str, *, tag: Optional[str] = None, require_interaction: bool = False) -> None:
        """Deliver a notification. HTTP failures propagate to the caller."""
        if not self.push_url:
            raise RuntimeError("No push URL configured")

        params: Dict[str, Any] = {
            "title": title,
            "body": body,
            "tag": tag,
            "requireInteraction": require_interaction,
            "icon": NOTIFICATION_ICON,
            "badge": NOTIFICATION_ICON,
            "autoCloseMs": AUTO_CLOSE_MS,
        }
        await self._call("notifications/show", params)
        logger.info("Notification sent (tag=%s)", tag)

    async def _call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.push_token:
            headers["Authorization"] = f"Bearer {self.push_token}"

        payload = _rpc_payload(method, params)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.push_url, json=payload, headers=headers)
            resp.raise_for_status()
            if not resp.content:
                return {}
            try:
                data = resp.json()
            except ValueError:
                logger.warning("Non-JSON reply from push webhook for %s", method)
                return {}
        if isinstance(data, dict) and data.get("error"):
            raise RuntimeError(f"Push webhook rejected {method}: {data['error']}")
        return data if isinstance(data, dict) else {}


def _parse_permission(raw: Any) -> PermissionState:
    try:
        return PermissionState(str(raw).strip().lower())
    except ValueError:
        return PermissionState.default


def _rpc_payload(method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": str(uuid.uuid4()),
        "method": method,
        "params": params,
    }
