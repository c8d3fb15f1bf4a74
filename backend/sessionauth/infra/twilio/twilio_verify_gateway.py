# sessionauth/infra/twilio/twilio_verify_gateway.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

import requests
from marshmallow import EXCLUDE, Schema, ValidationError, fields

from sessionauth.core.logger import mask_phone
from sessionauth.services._shared.errors import VerificationProviderError
from sessionauth.services._shared.ports import (
    ProviderReceipt,
    ProviderVerificationResult,
    VerificationGateway,
)

log = logging.getLogger(__name__)

SMS_CHANNEL = "sms"
DEFAULT_VERIFY_BASE_URL = "https://verify.twilio.com/v2"


class VerificationPayloadSchema(Schema):
    """Subset of the Verify v2 ``Verification``/``VerificationCheck`` resource we rely on."""

    class Meta:
        unknown = EXCLUDE

    sid = fields.String(required=True)
    to = fields.String(required=True)
    channel = fields.String(load_default=SMS_CHANNEL)
    status = fields.String(required=True)
    valid = fields.Boolean(load_default=False)


verification_schema = VerificationPayloadSchema()


@dataclass(frozen=True, slots=True)
class TwilioVerifySettings:
    """
    Provider credentials and transport bounds.

    :param account_sid: Account identifier (HTTP basic username).
    :param auth_token: Auth secret (HTTP basic password).
    :param service_sid: Verify service identifier.
    :param base_url: Verify v2 API root.
    :param timeout: Seconds allowed for connect and for read.
    """

    account_sid: str
    auth_token: str
    service_sid: str
    base_url: str = DEFAULT_VERIFY_BASE_URL
    timeout: float = 5.0

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> TwilioVerifySettings:
        return cls(
            account_sid=str(config.get("TWILIO_ACCOUNT_SID") or ""),
            auth_token=str(config.get("TWILIO_AUTH_TOKEN") or ""),
            service_sid=str(config.get("TWILIO_SERVICE_VERIFICATION_SID") or ""),
            base_url=str(config.get("TWILIO_VERIFY_BASE_URL") or DEFAULT_VERIFY_BASE_URL).rstrip("/"),
            timeout=float(config.get("VERIFICATION_TIMEOUT_SECONDS", 5.0)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.service_sid)


class TwilioVerifyGateway(VerificationGateway):
    """
    Adapter for the Twilio Verify v2 REST API.

    Every failure (missing credentials, timeout, connection error, non-2xx
    reply, unexpected body) is raised as :class:`VerificationProviderError`.
    Requests are sent once; the session's adapters do no retries because
    sending a code is not idempotent on the provider side.
    """

    def __init__(
        self, settings: TwilioVerifySettings, *, session: requests.Session | None = None
    ) -> None:
        self.settings = settings
        self.http = session or requests.Session()
        self.http.auth = (settings.account_sid, settings.auth_token)

    def _url(self, resource: str) -> str:
        return f"{self.settings.base_url}/Services/{self.settings.service_sid}/{resource}"

    def _post(self, resource: str, data: dict[str, str]) -> dict[str, Any]:
        if not self.settings.configured:
            raise VerificationProviderError("Verification provider is not configured.")

        try:
            resp = self.http.post(self._url(resource), data=data, timeout=self.settings.timeout)
        except requests.Timeout as exc:
            raise VerificationProviderError("Verification provider timed out.") from exc
        except requests.RequestException as exc:
            raise VerificationProviderError("Verification provider unreachable.") from exc

        if resp.status_code >= 400:
            provider_code = None
            with suppress(ValueError, AttributeError):
                provider_code = resp.json().get("code")
            log.warning(
                "verification.provider_rejected",
                extra={"provider_status": resp.status_code, "cause": provider_code},
            )
            raise VerificationProviderError(
                f"Provider rejected request (code={provider_code}).",
                status_code=resp.status_code,
            )

        try:
            return verification_schema.load(resp.json())
        except (ValueError, ValidationError) as exc:
            raise VerificationProviderError("Unexpected provider response.") from exc

    def send_code(self, phone_number: str) -> ProviderReceipt:
        payload = self._post("Verifications", {"To": phone_number, "Channel": SMS_CHANNEL})
        log.info(
            "verification.code_sent to=%s",
            mask_phone(phone_number),
            extra={"provider_status": payload["status"]},
        )
        return ProviderReceipt(**payload)

    def check_code(self, phone_number: str, code: str) -> ProviderVerificationResult:
        payload = self._post("VerificationCheck", {"To": phone_number, "Code": code})
        log.info(
            "verification.code_checked to=%s",
            mask_phone(phone_number),
            extra={"provider_status": payload["status"]},
        )
        return ProviderVerificationResult(**payload)
