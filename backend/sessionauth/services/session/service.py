# sessionauth/services/session/service.py
from __future__ import annotations

import logging
from typing import NoReturn

from werkzeug.security import check_password_hash, generate_password_hash

from sessionauth.services._shared.base import BaseService, ServiceContext
from sessionauth.services._shared.errors import (
    FailureCause,
    Forbidden,
    NotFound,
    ResetFailed,
    SessionError,
    TokenError,
    Unauthenticated,
    Unauthorized,
    VerificationProviderError,
    VerificationUnavailable,
)
from sessionauth.services._shared.ports import (
    DirectoryUser,
    ProviderReceipt,
    ProviderVerificationResult,
    Token,
    TokenCodec,
    TokenKind,
    TokenSettings,
    TokenStore,
    UserDirectory,
    VerificationGateway,
)
from sessionauth.services.session.dto import (
    LoginIn,
    LogoutIn,
    OtpRequestIn,
    OtpVerifyIn,
    RefreshIn,
    ResetPasswordIn,
    TokenPair,
)

log = logging.getLogger(__name__)

# Compared against when the identity is unknown so both rejections cost one hash check
_DUMMY_HASH = generate_password_hash("sessionauth-dummy-password")


class SessionService(BaseService):
    """
    Session lifecycle service (login / logout / refresh / reset / OTP).

    Issues tokens through a :class:`TokenCodec`, keeps the stateful ones in a
    :class:`TokenStore` and delegates phone verification to a
    :class:`VerificationGateway`.

    Security
    --------
    - Each security-sensitive flow surfaces exactly one generic error; the
      precise reason is kept on ``exc.cause`` and logged.
    - REFRESH and RESET_PASSWORD tokens are single use. ``consume`` and
      ``rotate`` on the store are atomic, so concurrent callers race safely.
    - ACCESS tokens are stateless and are not stored.
    """

    def __init__(
        self,
        *,
        users: UserDirectory,
        codec: TokenCodec,
        store: TokenStore,
        gateway: VerificationGateway,
        settings: TokenSettings,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param users: User directory (read + password update).
        :param codec: Adapter for issuing/parsing signed tokens.
        :param store: Stateful store for issued tokens.
        :param gateway: OTP provider.
        :param settings: Token lifetimes.
        """
        super().__init__(ctx=ctx)
        self.users = users
        self.codec = codec
        self.store = store
        self.gateway = gateway
        self.settings = settings

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _reject(
        self,
        error: type[SessionError],
        cause: FailureCause,
        *,
        flow: str,
        message: str | None = None,
        exc_info: bool = False,
    ) -> SessionError:
        log.warning(
            "session.%s rejected",
            flow,
            extra=self.log_extra(flow=flow, cause=cause.value),
            exc_info=exc_info,
        )
        return error(message, cause=cause)

    def _collapse(self, exc: Exception, error: type[SessionError], *, flow: str) -> NoReturn:
        """Re-raise ``exc`` as the flow's single generic error."""
        if isinstance(exc, error):
            raise exc
        if isinstance(exc, TokenError):
            raise self._reject(error, exc.cause, flow=flow) from exc
        if isinstance(exc, VerificationProviderError):
            raise self._reject(error, FailureCause.PROVIDER_FAILURE, flow=flow) from exc
        raise self._reject(error, FailureCause.INTERNAL, flow=flow, exc_info=True) from exc

    def _issue(self, subject: str | int, kind: TokenKind) -> Token:
        return self.codec.issue(subject, kind, self.settings.ttl_for(kind))

    def _issue_pair(self, user: DirectoryUser) -> TokenPair:
        return TokenPair(
            access=self._issue(user.id, TokenKind.ACCESS),
            refresh=self._issue(user.id, TokenKind.REFRESH),
        )

    # ------------------------------------------------------------------ #
    # Token issuance
    # ------------------------------------------------------------------ #

    def generate_auth_tokens(self, user: DirectoryUser) -> TokenPair:
        """
        Issue an ACCESS + REFRESH pair for ``user``.

        The REFRESH token is persisted before the pair is returned.
        """
        pair = self._issue_pair(user)
        self.store.save(pair.refresh)
        log.info("session.tokens_issued", extra=self.log_extra(subject=str(user.id)))
        return pair

    def generate_reset_password_token(self, email: str) -> str:
        """
        Issue and store a RESET_PASSWORD token for the user owning ``email``.

        :raises NotFound: If no user has this email.
        """
        user = self.users.get_user_by_email(email)
        if user is None:
            raise self._reject(
                NotFound,
                FailureCause.NO_SUCH_USER,
                flow="reset_request",
                message="No users found with this email",
            )
        token = self._issue(user.id, TokenKind.RESET_PASSWORD)
        self.store.save(token)
        return token.value

    def generate_verify_email_token(self, user: DirectoryUser) -> str:
        token = self._issue(user.id, TokenKind.VERIFY_EMAIL)
        self.store.save(token)
        return token.value

    # ------------------------------------------------------------------ #
    # Login / logout
    # ------------------------------------------------------------------ #

    def login_user(self, dto: LoginIn) -> DirectoryUser:
        """
        Authenticate credentials.

        :returns: The authenticated user. Tokens are issued separately via
            :meth:`generate_auth_tokens`.
        :raises Unauthorized: Unknown identity or wrong password (same message).
        :raises Forbidden: Credentials are right but the account is not verified.
        """
        user = self.users.get_user(dto.identity)
        if user is None:
            check_password_hash(_DUMMY_HASH, dto.password)
            raise self._reject(Unauthorized, FailureCause.NO_SUCH_USER, flow="login")
        if not user.is_password_match(dto.password):
            raise self._reject(Unauthorized, FailureCause.BAD_PASSWORD, flow="login")
        if not user.is_verified:
            raise self._reject(Forbidden, FailureCause.NOT_VERIFIED, flow="login")
        return user

    def logout(self, dto: LogoutIn) -> None:
        """
        Revoke a REFRESH token.

        Not idempotent: a token that is absent, expired or already revoked
        is reported as :class:`NotFound`.
        """
        if self.store.consume(dto.refresh_token, TokenKind.REFRESH) is None:
            raise self._reject(NotFound, FailureCause.TOKEN_ABSENT, flow="logout")

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh_auth(self, dto: RefreshIn) -> TokenPair:
        """
        Exchange a REFRESH token for a new pair.

        Of two concurrent calls with the same token at most one succeeds.

        :raises Unauthenticated: For any failure.
        """
        flow = "refresh"
        try:
            claims = self.codec.parse(dto.refresh_token, TokenKind.REFRESH)
            stored = self.store.find_active(dto.refresh_token, TokenKind.REFRESH)
            if stored is None or stored.subject != claims.subject:
                raise self._reject(Unauthenticated, FailureCause.TOKEN_ABSENT, flow=flow)

            user = self.users.get_user_by_id(claims.subject)
            if user is None:
                raise self._reject(Unauthenticated, FailureCause.SUBJECT_MISSING, flow=flow)

            pair = self._issue_pair(user)
            if not self.store.rotate(dto.refresh_token, TokenKind.REFRESH, [pair.refresh]):
                raise self._reject(Unauthenticated, FailureCause.TOKEN_ALREADY_USED, flow=flow)
        except Exception as exc:
            self._collapse(exc, Unauthenticated, flow=flow)

        log.info("session.refreshed", extra=self.log_extra(flow=flow, subject=claims.subject))
        return pair

    # ------------------------------------------------------------------ #
    # Password reset
    # ------------------------------------------------------------------ #

    def reset_password(self, dto: ResetPasswordIn) -> None:
        """
        Set a new password using a RESET_PASSWORD token.

        The token is claimed (together with every other reset token of the
        same user) before the password changes, so a token works once even
        under concurrent use.

        :raises ResetFailed: For any failure.
        """
        flow = "reset_password"
        try:
            claims = self.codec.parse(dto.token, TokenKind.RESET_PASSWORD)
            consumed = self.store.consume(dto.token, TokenKind.RESET_PASSWORD, sweep_subject=True)
            if consumed is None or consumed.subject != claims.subject:
                raise self._reject(ResetFailed, FailureCause.TOKEN_ABSENT, flow=flow)

            user = self.users.get_user_by_id(claims.subject)
            if user is None:
                raise self._reject(ResetFailed, FailureCause.SUBJECT_MISSING, flow=flow)

            self.users.update_user_by_id(user.id, {"password": dto.new_password})
            self.store.invalidate_all_of_kind_for_subject(str(user.id), TokenKind.RESET_PASSWORD)
        except Exception as exc:
            self._collapse(exc, ResetFailed, flow=flow)

        log.info(
            "session.password_reset", extra=self.log_extra(flow=flow, subject=claims.subject)
        )

    # ------------------------------------------------------------------ #
    # One-time passwords
    # ------------------------------------------------------------------ #

    def request_one_time_password(self, dto: OtpRequestIn) -> ProviderReceipt:
        """
        Ask the provider to send a code to ``dto.phone_number``.

        :raises VerificationUnavailable: For any provider failure.
        """
        try:
            return self.gateway.send_code(dto.phone_number)
        except Exception as exc:
            self._collapse(exc, VerificationUnavailable, flow="otp_request")

    def verify_phone_number(self, dto: OtpVerifyIn) -> ProviderVerificationResult:
        """
        Check a code with the provider.

        A wrong code is not an error: the provider result carries the status.

        :raises VerificationUnavailable: For any provider failure.
        """
        try:
            return self.gateway.check_code(dto.phone_number, dto.code)
        except Exception as exc:
            self._collapse(exc, VerificationUnavailable, flow="otp_verify")
