# notes_auth/services/session/service.py
from __future__ import annotations

import logging

from notes_auth.services._shared.errors import UserDirectoryError
from notes_auth.services._shared.ports.mail_sender import LoggingMailSender, MailSender
from notes_auth.services._shared.ports.password_hasher import PasswordHasher
from notes_auth.services._shared.ports.token_store import TokenKind
from notes_auth.services._shared.ports.user_directory import UserDirectory
from notes_auth.services._shared.result import Fail, FailureKind, Ok, Result, fail
from notes_auth.services.tokens.action_tokens import ActionTokenManager
from notes_auth.services.tokens.dto import TokenPair
from notes_auth.services.tokens.rotation import RefreshRotationEngine

log = logging.getLogger(__name__)


class SessionService:
    """
    Session lifecycle facade (login / refresh / logout / single-use flows).

    Orchestrates the rotation engine and the action-token manager and applies
    side effects on the user collaborator. Side effects (mark email verified,
    replace password hash) run only after a successful ``consume``.
    Every operation returns a :data:`~notes_auth.services._shared.result.Result`.
    """

    def __init__(
        self,
        *,
        rotation: RefreshRotationEngine,
        action_tokens: ActionTokenManager,
        users: UserDirectory,
        hasher: PasswordHasher,
        mailer: MailSender | None = None,
    ) -> None:
        """
        Initialize the facade with its collaborators.

        :param rotation: Refresh rotation engine (also mints access tokens).
        :param action_tokens: Manager for reset / verification tokens.
        :param users: User collaborator.
        :param hasher: Password hash/compare capability.
        :param mailer: Outbound mail intent; defaults to a logging sender.
        """
        self.rotation = rotation
        self.action_tokens = action_tokens
        self.users = users
        self.hasher = hasher
        self.mailer = mailer or LoggingMailSender()

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, user_id: str) -> Result[TokenPair]:
        """
        Issue a fresh token pair for an already authenticated user.

        Used after password authentication and after OAuth success alike.
        """
        pair = self.rotation.issue_pair(str(user_id))
        log.info("session.login", extra={"user_id": str(user_id), "event": "login"})
        return Ok(pair)

    def authenticate(self, email: str, password: str) -> Result[str]:
        """
        Check credentials and return the user id.

        :returns: ``Ok(user_id)``; ``Fail(UNAUTHORIZED)`` on unknown email or
            wrong password (indistinguishable); ``Fail(EMAIL_NOT_VERIFIED)``
            when the password is right but the address is unconfirmed.
        """
        user = self.users.get_by_email(email)
        if user is None or not self.hasher.verify(password, user.password_hash):
            return fail(FailureKind.UNAUTHORIZED, "invalid credentials")
        if not user.email_verified:
            return fail(FailureKind.EMAIL_NOT_VERIFIED, "email not verified")
        return Ok(user.id)

    def login_with_password(self, email: str, password: str) -> Result[TokenPair]:
        """Authenticate then :meth:`login`."""
        authenticated = self.authenticate(email, password)
        if isinstance(authenticated, Fail):
            return authenticated
        return self.login(authenticated.value)

    # ------------------------------------------------------------------ #
    # Refresh / logout
    # ------------------------------------------------------------------ #

    def refresh(self, presented_refresh_token: str, claimed_user_id: str) -> Result[TokenPair]:
        """Rotate the presented refresh token; see :meth:`RefreshRotationEngine.rotate`."""
        return self.rotation.rotate(presented_refresh_token, str(claimed_user_id))

    def logout(
        self,
        user_id: str,
        presented_refresh_token: str | None,
        *,
        all_sessions: bool = False,
    ) -> Ok[None]:
        """
        Best-effort revocation; always succeeds from the caller's perspective.

        :param user_id: Authenticated user logging out.
        :param presented_refresh_token: Refresh token of this session, if any.
        :param all_sessions: Also revoke every other refresh token of the user.
        """
        if presented_refresh_token:
            revoked = self.rotation.revoke_one(presented_refresh_token)
            if isinstance(revoked, Fail):
                # Idempotent logout: an already-gone token is fine.
                log.debug("session.logout_token_absent", extra={"user_id": str(user_id)})
        if all_sessions:
            self.rotation.revoke_all(str(user_id))
        log.info(
            "session.logout",
            extra={"user_id": str(user_id), "event": "logout_all" if all_sessions else "logout"},
        )
        return Ok(None)

    # ------------------------------------------------------------------ #
    # Email verification
    # ------------------------------------------------------------------ #

    def verify_email_request(self, user_id: str) -> Result[str]:
        """
        Issue an email-verification token and queue the mail.

        :returns: ``Ok(token)``, or ``Fail`` with ``NOT_FOUND`` (unknown user),
            ``ALREADY_VERIFIED`` or ``ALREADY_OUTSTANDING``.
        """
        user = self.users.get_by_id(str(user_id))
        if user is None:
            return fail(FailureKind.NOT_FOUND, "user not found")
        if user.email_verified:
            return fail(FailureKind.ALREADY_VERIFIED, "email already verified")

        issued = self.action_tokens.request(user.id, TokenKind.EMAIL_VERIFICATION)
        if isinstance(issued, Ok):
            self.mailer.send_email_verification(email=user.email, token=issued.value)
        return issued

    def verify_email_consume(self, token: str) -> Result[str]:
        """Consume a verification token, then mark the owner's email verified."""
        consumed = self.action_tokens.consume(token, TokenKind.EMAIL_VERIFICATION)
        if isinstance(consumed, Fail):
            return consumed
        user_id = consumed.value
        if self.users.get_by_id(user_id) is None:
            return fail(FailureKind.NOT_FOUND, "token owner no longer exists")
        self.users.mark_email_verified(user_id)
        log.info("session.email_verified", extra={"user_id": user_id})
        return Ok(user_id)

    # ------------------------------------------------------------------ #
    # Password reset
    # ------------------------------------------------------------------ #

    def reset_password_request(self, user_id: str) -> Result[str]:
        """
        Issue a password-reset token and queue the mail.

        :returns: ``Ok(token)``, or ``Fail`` with ``NOT_FOUND``,
            ``EMAIL_NOT_VERIFIED`` or ``ALREADY_OUTSTANDING``.
        """
        user = self.users.get_by_id(str(user_id))
        if user is None:
            return fail(FailureKind.NOT_FOUND, "user not found")
        if not user.email_verified:
            return fail(FailureKind.EMAIL_NOT_VERIFIED, "email not verified")

        issued = self.action_tokens.request(user.id, TokenKind.PASSWORD_RESET)
        if isinstance(issued, Ok):
            self.mailer.send_password_reset(email=user.email, token=issued.value)
        return issued

    def reset_password_request_for_email(self, email: str) -> Result[str]:
        """Resolve ``email`` to a user, then :meth:`reset_password_request`."""
        user = self.users.get_by_email(email)
        if user is None:
            return fail(FailureKind.NOT_FOUND, "user not found")
        return self.reset_password_request(user.id)

    def reset_password_peek(self, token: str) -> Result[str]:
        """Check that a reset link is still usable, without consuming it."""
        return self.action_tokens.peek(token, TokenKind.PASSWORD_RESET)

    def reset_password_consume(self, token: str, new_password: str) -> Result[str]:
        """
        Consume a reset token and replace the owner's password hash.

        The new password is hashed before the token is consumed, so an
        unacceptable password leaves the link usable. After the hash is
        stored every refresh token of the user is revoked.

        The link is spent by the time the hash is written. A failing write is
        retried once. A second failure propagates with the password unchanged,
        and the user has to request a new reset link.

        :raises ValueError: If ``new_password`` is rejected by the hasher.
        :raises UserDirectoryError: If the hash cannot be stored after a retry.
        """
        new_hash = self.hasher.hash(new_password)
        consumed = self.action_tokens.consume(token, TokenKind.PASSWORD_RESET)
        if isinstance(consumed, Fail):
            return consumed
        user_id = consumed.value
        if self.users.get_by_id(user_id) is None:
            return fail(FailureKind.NOT_FOUND, "token owner no longer exists")
        try:
            self.users.set_password_hash(user_id, new_hash)
        except UserDirectoryError:
            log.warning("session.password_reset_retry", extra={"user_id": user_id})
            self.users.set_password_hash(user_id, new_hash)
        self.rotation.revoke_all(user_id)
        log.info("session.password_reset", extra={"user_id": user_id})
        return Ok(user_id)
