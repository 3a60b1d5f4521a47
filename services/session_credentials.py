"""
Session credentials for real-time consultation rooms.

A credential is a signed claims token (python-jose, HMAC) that binds one
participant to one consultation room until an absolute expiry. Nothing is
stored server side: any instance holding the same secret can verify it,
and it cannot be revoked before it expires.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Optional

from jose import JWTError, jwt

from core.config import settings
from core.exceptions import BusinessError, ErrorCode
from schemas import SessionCredential

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


class SessionCredentialIssuer:
    def __init__(
        self,
        app_id: str,
        secret: str,
        expire_minutes: int = 30,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utc_now,
    ):
        if not secret:
            raise ValueError("A signing secret is required for session credentials")
        self._app_id = app_id
        self._secret = secret
        self._expire_minutes = expire_minutes
        self._algorithm = algorithm
        self._clock = clock

    @property
    def app_id(self) -> str:
        return self._app_id

    @property
    def expire_minutes(self) -> int:
        return self._expire_minutes

    @staticmethod
    def room_id_for(consultation_id: Any) -> str:
        """Every participant of a consultation lands in the same room"""
        return f"room_{consultation_id}"

    def issue(self, consultation_id: Any, participant_id: Any, role: Optional[str]) -> SessionCredential:
        """
        Mint a credential for one participant of a consultation.

        Raises:
            BusinessError: PARAM_ERROR when the consultation or participant is missing
        """
        if _is_blank(consultation_id) or _is_blank(participant_id):
            raise BusinessError(
                ErrorCode.PARAM_ERROR,
                "consultation_id and participant_id are required",
            )

        role_code = getattr(role, "value", role)
        room_id = self.room_id_for(consultation_id)
        uid = str(participant_id)
        issued_at = self._clock()
        expire_at = issued_at + timedelta(minutes=self._expire_minutes)

        claims = {
            "sub": uid,
            "room_id": room_id,
            "consultation_id": consultation_id,
            "role": role_code,
            "app_id": self._app_id,
            "iat": int(issued_at.timestamp()),
            "exp": int(expire_at.timestamp()),
        }
        token = jwt.encode(claims, self._secret, algorithm=self._algorithm)

        logger.info(
            f"Issued session credential: consultation_id={consultation_id}, "
            f"participant_id={uid}, room_id={room_id}"
        )

        return SessionCredential(
            token=token,
            room_id=room_id,
            uid=uid,
            app_id=self._app_id,
            expire_at=expire_at,
        )

    def validate(self, token: Optional[str], consultation_id: Any, participant_id: Any) -> bool:
        """True only for an unexpired, untampered token bound to this consultation and participant"""
        if not token or not isinstance(token, str):
            logger.warning("Session credential validation failed: empty token")
            return False

        try:
            # Expiry is checked below against the issuer clock
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "require_sub": True},
            )
            expire_at = int(claims["exp"])
            token_consultation_id = claims["consultation_id"]
            token_uid = claims["sub"]
        except (JWTError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Session credential validation failed: {e}")
            return False

        if int(self._clock().timestamp()) >= expire_at:
            logger.warning(f"Session credential validation failed: expired for consultation {token_consultation_id}")
            return False

        if str(token_consultation_id) != str(consultation_id) or token_uid != str(participant_id):
            logger.warning(
                f"Session credential validation failed: bound to consultation {token_consultation_id}, "
                f"participant {token_uid}; presented for consultation {consultation_id}, participant {participant_id}"
            )
            return False

        return True


@lru_cache
def get_session_issuer() -> SessionCredentialIssuer:
    return SessionCredentialIssuer(
        app_id=settings.RTC_APP_ID,
        secret=settings.RTC_APP_SECRET,
        expire_minutes=settings.RTC_TOKEN_EXPIRE_MINUTES,
        algorithm=settings.RTC_TOKEN_ALGORITHM,
    )
