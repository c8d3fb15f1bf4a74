from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from sessionauth.services._shared.errors import VerificationProviderError


@dataclass(frozen=True, slots=True)
class ProviderReceipt:
    """
    Acknowledgement of an OTP challenge sent by the provider.

    :ivar sid: Provider-assigned verification id.
    :ivar to: Destination phone number (as echoed by the provider).
    :ivar channel: Delivery channel (``sms``).
    :ivar status: Provider status string (e.g. ``pending``); opaque to the core.
    :ivar valid: Whether the challenge is already satisfied.
    """

    sid: str
    to: str
    channel: str
    status: str
    valid: bool = False


@dataclass(frozen=True, slots=True)
class ProviderVerificationResult:
    """Outcome of checking a code. ``status`` is ``approved`` on success."""

    sid: str
    to: str
    channel: str
    status: str
    valid: bool = False

    @property
    def approved(self) -> bool:
        return self.valid and self.status == "approved"


class VerificationGateway(Protocol):
    """
    Capability interface to an external OTP provider.

    Implementations raise :class:`VerificationProviderError` for every failure
    (transport, timeout, rejected number, rate limit, unparsable response).
    Calls are not assumed idempotent and are never retried.
    """

    def send_code(self, phone_number: str) -> ProviderReceipt: ...

    def check_code(self, phone_number: str, code: str) -> ProviderVerificationResult: ...


@dataclass
class StubVerificationGateway(VerificationGateway):
    """
    Deterministic gateway used in unit tests.

    ``codes`` maps phone numbers to the code that will be approved. Set
    ``fail_with`` to make every call raise like an unreachable provider.
    """

    codes: dict[str, str] = field(default_factory=dict)
    default_code: str = "123456"
    fail_with: str | None = None
    calls: list[tuple[str, str]] = field(default_factory=list)
    _seq: int = 0

    def _next_sid(self) -> str:
        self._seq += 1
        return f"VE{self._seq:032d}"

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise VerificationProviderError(self.fail_with)

    def send_code(self, phone_number: str) -> ProviderReceipt:
        self.calls.append(("send", phone_number))
        self._maybe_fail()
        self.codes.setdefault(phone_number, self.default_code)
        return ProviderReceipt(
            sid=self._next_sid(), to=phone_number, channel="sms", status="pending"
        )

    def check_code(self, phone_number: str, code: str) -> ProviderVerificationResult:
        self.calls.append(("check", phone_number))
        self._maybe_fail()
        approved = self.codes.get(phone_number) == code
        if approved:
            # provider-side challenges are single use
            self.codes.pop(phone_number, None)
        return ProviderVerificationResult(
            sid=self._next_sid(),
            to=phone_number,
            channel="sms",
            status="approved" if approved else "pending",
            valid=approved,
        )
