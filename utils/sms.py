import json
import logging
import time

import httpx

from security.phone import normalize_phone, mask_phone

logger = logging.getLogger(__name__)

MNOTIFY_URL = "https://api.mnotify.com/api/sms/quick"
TERMII_URL = "https://api.ng.termii.com/api/sms/send"


class SmsProvider:
    """One vendor. `deliver` returns True only on a confirmed accept."""
    name = "base"
    url = None

    def __init__(self, api_key, sender_id, timeout=20.0, transport=None, clock=time.monotonic):
        self.api_key = api_key
        self.sender_id = sender_id
        self.timeout = timeout
        self.transport = transport
        self.clock = clock

    def _post_json(self, payload: dict):
        """
        POST and parse the reply under one deadline for the whole exchange.
        httpx only bounds each connect/read step, so a body trickled in byte
        by byte is cut off here as soon as a chunk lands past the deadline.
        """
        deadline = self.clock() + self.timeout
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            with client.stream("POST", self.url, json=payload, headers=headers) as response:
                body = bytearray()
                for chunk in response.iter_bytes():
                    body.extend(chunk)
                    if self.clock() > deadline:
                        raise httpx.ReadTimeout(
                            f"no complete response within {self.timeout}s", request=response.request
                        )
        return json.loads(bytes(body))

    def deliver(self, phone: str, message: str) -> bool:
        if not self.api_key:
            logger.error("%s API key not configured", self.name)
            return False
        try:
            result = self._post_json(self.payload(phone, message))
        except (httpx.HTTPError, ValueError) as exc:
            # network failures, timeouts and non-JSON bodies all count as not sent
            logger.error("%s request failed for %s: %s", self.name, mask_phone(phone), exc)
            return False

        accepted = self.accepted(result)
        if not accepted:
            logger.warning("%s rejected message to %s: %s", self.name, mask_phone(phone), result)
        return accepted

    def payload(self, phone: str, message: str) -> dict:
        raise NotImplementedError

    def accepted(self, result) -> bool:
        raise NotImplementedError


class MNotifyProvider(SmsProvider):
    name = "mNotify"
    url = MNOTIFY_URL

    def payload(self, phone, message):
        return {
            "key": self.api_key,
            "recipient": [phone.lstrip("+")],
            "sender": self.sender_id,
            "message": message,
            "is_schedule": False,
            "schedule_date": "",
        }

    def accepted(self, result):
        return isinstance(result, dict) and (
            result.get("status") == "success" or str(result.get("code")) == "2000"
        )


class TermiiProvider(SmsProvider):
    name = "Termii"
    url = TERMII_URL

    def payload(self, phone, message):
        return {
            "api_key": self.api_key,
            "to": phone,
            "from": self.sender_id,
            "sms": message,
            "type": "plain",
            "channel": "generic",
        }

    def accepted(self, result):
        return isinstance(result, dict) and result.get("code") == "ok"


class SmsGateway:
    """
    Routes a text to the provider for the user's country.
    Callers only ever see a bool; the reason for a failure stays in the log.
    """

    def __init__(self, providers: dict):
        self.providers = {k.upper(): v for k, v in providers.items()}

    @classmethod
    def from_config(cls, config) -> "SmsGateway":
        timeout = float(config.get("SMS_TIMEOUT_SECONDS", 20))
        return cls({
            "GH": MNotifyProvider(config.get("MNOTIFY_API_KEY"), config.get("MNOTIFY_SENDER_ID"), timeout),
            "NG": TermiiProvider(config.get("TERMII_API_KEY"), config.get("TERMII_SENDER_ID"), timeout),
        })

    def send(self, phone: str, message: str, country: str) -> bool:
        country = (country or "").upper()
        provider = self.providers.get(country)
        if provider is None:
            logger.error("Unsupported country for SMS: %s", country)
            return False
        return provider.deliver(normalize_phone(phone, country), message)
