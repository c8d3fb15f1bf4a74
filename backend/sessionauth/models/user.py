"""User model backing the SQLAlchemy user directory adapter."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, UniqueConstraint, false, func
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import check_password_hash, generate_password_hash

from sessionauth.core.extensions import db


class User(db.Model):
    """
    Login identity as seen by the session layer.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    username : str
        Public handle, also accepted as a login identity.
    phone_number : str | None
        E.164 number used for OTP verification; also a login identity.
    password_hash : str
        Hashed password (write-only setter via ``password``).
    is_verified : bool
        Set by the directory once the account is verified. Login requires it.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("phone_number", name="uq_users_phone_number"),
        Index("ix_users_email", "email"),
        Index("ix_users_phone_number", "phone_number"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} verified={self.is_verified}>"

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def is_password_match(self, plaintext: str) -> bool:
        """
        Verify a password against the stored hash.

        :param plaintext: Plain text password candidate.
        :returns: ``True`` if it matches; otherwise ``False``.
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, plaintext))

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("phone_number")
    def _normalize_phone(self, key: str, value: str | None) -> str | None:
        if value is None:
            return None
        v = value.strip().replace(" ", "")
        if not v.startswith("+") or not v[1:].isdigit():
            raise ValueError("Phone number must be in E.164 format.")
        return v
