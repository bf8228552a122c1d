"""
Password hashing utilities using bcrypt.
"""

import bcrypt

# Number of rounds for bcrypt hashing (12 is secure default)
BCRYPT_ROUNDS = 12


class PasswordHasher:
    """Password hashing service."""

    @staticmethod
    def _truncate_password(password: str) -> bytes:
        """bcrypt only uses the first 72 bytes of a password."""
        return password.encode("utf-8")[:72]

    @staticmethod
    def hash(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password
            rounds: bcrypt cost factor

        Returns:
            Hashed password string
        """
        pwd_bytes = PasswordHasher._truncate_password(password)
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(pwd_bytes, salt).decode("utf-8")

    @staticmethod
    def verify(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash. Malformed hashes never match."""
        try:
            pwd_bytes = PasswordHasher._truncate_password(plain_password)
            return bcrypt.checkpw(pwd_bytes, hashed_password.encode("utf-8"))
        except ValueError:
            return False


# Convenience functions
def hash_password(password: str) -> str:
    """Hash a password."""
    return PasswordHasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password."""
    return PasswordHasher.verify(plain_password, hashed_password)
