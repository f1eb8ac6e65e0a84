"""Push message construction and delivery through an FCM-style HTTP gateway."""

import time
from dataclasses import dataclass

import httpx

from avahanaa.common.logging import logger
from avahanaa.common.metrics import push_failures_total, push_latency_seconds
from avahanaa.common.tracing import tracer

# Gateway answers meaning the registration token will never work again.
PERMANENT_ERROR_CODES = {"NOT_FOUND", "UNREGISTERED"}
# INVALID_ARGUMENT is only permanent when the gateway blames the token itself.
INVALID_TOKEN_HINT = "registration token"


@dataclass(frozen=True)
class DeliveryFailure:
    """Gateway rejection or transport failure for one send."""

    permanent: bool
    message: str
    status_code: int | None = None
    error_code: str = ""

    @property
    def classification(self) -> str:
        return "permanent" if self.permanent else "transient"


def build_data_payload(code_id: str, owner_id: str, vehicle_id: str, metadata: dict[str, str], source: str) -> dict[str, str]:
    """Flat string map delivered to the app alongside the visible notification."""

    data = dict(metadata)
    data.update({"codeId": code_id, "ownerId": owner_id, "source": source})
    if vehicle_id:
        data["vehicleId"] = vehicle_id
    return data


def build_message(
    token: str,
    title: str,
    body: str,
    data: dict[str, str],
    channel_id: str,
    click_action: str,
) -> dict:
    """Platform-neutral notification plus Android/APNs delivery hints."""

    return {
        "message": {
            "token": token,
            "notification": {"title": title, "body": body},
            "data": data,
            "android": {
                "priority": "high",
                "notification": {
                    "channel_id": channel_id,
                    "click_action": click_action,
                    "sound": "default",
                },
            },
            "apns": {
                "headers": {"apns-priority": "10"},
                "payload": {"aps": {"sound": "default", "category": click_action}},
            },
        }
    }


def _message_name(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return ""
    return str(payload.get("name", "")) if isinstance(payload, dict) else ""


def classify_response(resp: httpx.Response) -> DeliveryFailure:
    """Turn a non-2xx gateway response into a delivery failure."""

    status = ""
    error_code = ""
    message = f"push gateway returned status={resp.status_code}"
    try:
        payload = resp.json()
    except ValueError:
        payload = {}
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        status = str(error.get("status") or "")
        message = str(error.get("message") or message)
        for detail in error.get("details") or []:
            if isinstance(detail, dict) and detail.get("errorCode"):
                error_code = str(detail["errorCode"])
                break
    invalid_token = "INVALID_ARGUMENT" in (status, error_code) and INVALID_TOKEN_HINT in message.lower()
    permanent = (
        resp.status_code == 404
        or status in PERMANENT_ERROR_CODES
        or error_code in PERMANENT_ERROR_CODES
        or invalid_token
    )
    return DeliveryFailure(
        permanent=permanent,
        message=message,
        status_code=resp.status_code,
        error_code=error_code or status,
    )


class PushDispatcher:
    """Single-attempt sender; the gateway owns delivery after acceptance."""

    def __init__(
        self,
        client: httpx.Client,
        gateway_url: str,
        gateway_token: str = "",
        channel_id: str = "vehicle_alerts",
        click_action: str = "OPEN_VEHICLE_ALERT",
        service_name: str = "notify",
    ) -> None:
        self.client = client
        self.gateway_url = gateway_url
        self.gateway_token = gateway_token
        self.channel_id = channel_id
        self.click_action = click_action
        self.service_name = service_name

    def send(self, token: str, title: str, body: str, data: dict[str, str]) -> str | DeliveryFailure:
        """Submit one message; return the gateway message name or the failure."""

        message = build_message(token, title, body, data, self.channel_id, self.click_action)
        headers = {"Authorization": f"Bearer {self.gateway_token}"} if self.gateway_token else {}
        started = time.perf_counter()
        with tracer.start_as_current_span("push.send"):
            try:
                resp = self.client.post(self.gateway_url, json=message, headers=headers)
            except httpx.HTTPError as exc:
                failure = DeliveryFailure(permanent=False, message=f"push gateway unreachable: {exc}")
            else:
                if resp.is_success:
                    push_latency_seconds.labels(service=self.service_name).observe(time.perf_counter() - started)
                    return _message_name(resp)
                failure = classify_response(resp)
        push_failures_total.labels(service=self.service_name, classification=failure.classification).inc()
        logger.warning(
            "push delivery failed classification=%s status_code=%s error_code=%s",
            failure.classification,
            failure.status_code,
            failure.error_code,
        )
        return failure

    def close(self) -> None:
        self.client.close()
