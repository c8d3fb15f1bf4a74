from .dto import (
    LoginIn,
    LogoutIn,
    OtpRequestIn,
    OtpVerifyIn,
    RefreshIn,
    ResetPasswordIn,
    TokenPair,
)
from .service import SessionService

__all__ = [
    "SessionService",
    "LoginIn",
    "LogoutIn",
    "RefreshIn",
    "ResetPasswordIn",
    "OtpRequestIn",
    "OtpVerifyIn",
    "TokenPair",
]
