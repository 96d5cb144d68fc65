"""Panel accounts and login sessions (in-memory, lost on restart)."""

import hashlib
import hmac
import logging
import secrets
import threading
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from .types import Account, Role

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 200_000
_PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789!@#"


def generate_password(length: int = 12) -> str:
    """Random password without look-alike characters (0/O, 1/l/I)."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), _PBKDF2_ROUNDS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt, expected = stored.split("$", 1)
        digest = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), _PBKDF2_ROUNDS)
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


class AccountStore:
    """Accounts keyed by lower-cased name."""

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.Lock()

    def create_account(self, name: str, role: Role = Role.MODERATOR, password: Optional[str] = None) -> Tuple[Account, str]:
        """Create an account.

        Returns:
            (account, password); the password is only ever returned here
        """
        password = password or generate_password()
        account = Account(
            id=str(uuid.uuid4()),
            name=name,
            role=role,
            password_hash=hash_password(password),
        )
        with self._lock:
            key = name.lower()
            if key in self._accounts:
                raise ValueError(f"account already exists: {name}")
            self._accounts[key] = account
        logger.info(f"Account created: {name} ({role.value})")
        return account, password

    def get(self, name: str) -> Optional[Account]:
        with self._lock:
            return self._accounts.get(name.lower())

    def authenticate(self, name: str, password: str) -> Optional[Account]:
        account = self.get(name)
        if account is None or not verify_password(password, account.password_hash):
            return None
        return account

    def ensure_owner(self, owner_name: str) -> Optional[str]:
        """Create the owner account if the store is empty. Returns its password if created."""
        with self._lock:
            if self._accounts:
                return None
        _, password = self.create_account(owner_name, Role.OWNER, generate_password(16))
        return password

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)


class SessionStore:
    """Opaque bearer tokens with a fixed TTL."""

    def __init__(self, ttl_hours: float = 8.0):
        self.ttl = timedelta(hours=ttl_hours)
        self._sessions: Dict[str, Tuple[Account, datetime]] = {}
        self._lock = threading.Lock()

    def create_session(self, account: Account) -> str:
        """Create a new session token and prune expired ones."""
        token = secrets.token_hex(32)
        now = datetime.now()
        with self._lock:
            self._sessions = {t: s for t, s in self._sessions.items() if s[1] > now}
            self._sessions[token] = (account, now + self.ttl)
        return token

    def resolve(self, token: Optional[str]) -> Optional[Account]:
        """Return the account behind a valid, unexpired token."""
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            account, expiry = session
            if datetime.now() > expiry:
                del self._sessions[token]
                return None
            return account

    def revoke(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)
