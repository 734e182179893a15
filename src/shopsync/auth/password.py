"""
Password hashing and verification utilities.
"""

import bcrypt

from shopsync.utils.exceptions import ValidationError
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


class PasswordManager:
    """
    Manages password hashing and verification using bcrypt.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Hash a plaintext password.

        Raises:
            ValidationError: If the password is shorter than 8 characters
        """
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        # Bcrypt only accepts up to 72 bytes
        password_bytes = password.encode('utf-8')[:72]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password_bytes, salt).decode('utf-8')

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """True if ``plain_password`` matches ``hashed_password``. Malformed hashes never match."""
        try:
            return bcrypt.checkpw(plain_password.encode('utf-8')[:72], hashed_password.encode('utf-8'))
        except ValueError as e:
            logger.error(f"Password verification failed: {e}")
            return False
