# lead_intake/auth/security.py
import logging
import time
from typing import Optional

import bcrypt
import jwt

ALGO = "HS256"

logger = logging.getLogger("intake.auth")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.warning("Password verification failed: %s", e)
        return False


class TokenIssuer:
    """
    Signs and verifies the bearer tokens carrying identity claims:
      sub      user id
      org_id   organization the session is acting in
      org_role admin | manager | member (the "org:" prefix is accepted too)
    """

    def __init__(self, secret: str, expire_min: int = 1440):
        self.secret = secret
        self.expire_min = expire_min

    def create_token(self, payload: dict) -> str:
        now = int(time.time())
        exp = now + self.expire_min * 60
        to_encode = {**payload, "iat": now, "exp": exp}
        return jwt.encode(to_encode, self.secret, algorithm=ALGO)

    def verify_token(self, token: str) -> Optional[dict]:
        try:
            return jwt.decode(token, self.secret, algorithms=[ALGO])
        except jwt.PyJWTError as e:
            logger.warning("Token verification failed: %s", e)
            return None
