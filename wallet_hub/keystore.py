"""Encrypted account storage and short-lived unlock sessions.

Private keys are sealed with AES-GCM under a key derived from the account
password with PBKDF2-HMAC-SHA256. The stored form is
``base64(salt[16] | iv[12] | ciphertext)``.
"""
from __future__ import annotations

import base64
import json
import logging
import os
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from eth_account import Account

from .errors import CredentialError, ValidationError
from .models import AccountRecord

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
SALT_BYTES = 16
IV_BYTES = 12


def _derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations
    )
    return kdf.derive(password.encode())


def encrypt_secret(
    plaintext: str, password: str, iterations: int = PBKDF2_ITERATIONS
) -> str:
    salt = os.urandom(SALT_BYTES)
    iv = os.urandom(IV_BYTES)
    sealed = AESGCM(_derive_key(password, salt, iterations)).encrypt(
        iv, plaintext.encode(), None
    )
    return base64.b64encode(salt + iv + sealed).decode()


def decrypt_secret(
    encrypted: str, password: str, iterations: int = PBKDF2_ITERATIONS
) -> str:
    """Open a sealed secret; raises :class:`CredentialError` on a bad password."""
    try:
        combined = base64.b64decode(encrypted, validate=True)
    except ValueError:
        raise CredentialError("Stored key data is corrupted") from None
    if len(combined) <= SALT_BYTES + IV_BYTES:
        raise CredentialError("Stored key data is corrupted")

    salt = combined[:SALT_BYTES]
    iv = combined[SALT_BYTES : SALT_BYTES + IV_BYTES]
    sealed = combined[SALT_BYTES + IV_BYTES :]
    try:
        plaintext = AESGCM(_derive_key(password, salt, iterations)).decrypt(
            iv, sealed, None
        )
    except InvalidTag:
        raise CredentialError(
            "Failed to decrypt wallet data - incorrect password or corrupted data"
        ) from None
    return plaintext.decode()


@dataclass
class UserSession:
    """Credential context for one signing operation.

    The password lives only as long as the operation; :meth:`clear` drops it.
    """

    account_id: str
    password: str | None

    @property
    def active(self) -> bool:
        return self.password is not None

    def clear(self) -> None:
        self.password = None


class Keystore:
    """JSON file of accounts with encrypted private keys."""

    def __init__(self, path: str | Path, iterations: int = PBKDF2_ITERATIONS) -> None:
        self.path = Path(path)
        self.iterations = iterations

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> list[AccountRecord]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            raw = json.load(f)
        return [AccountRecord(**entry) for entry in raw.get("accounts", [])]

    def _save(self, accounts: list[AccountRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump({"accounts": [asdict(a) for a in accounts]}, f, indent=2)
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def list_accounts(self) -> list[AccountRecord]:
        return self._load()

    def get_account(self, account_id: str) -> AccountRecord:
        for account in self._load():
            if account.id == account_id:
                return account
        raise CredentialError(f"Account not found: {account_id}")

    def _add(self, name: str, private_key: str, password: str, account_type: str) -> AccountRecord:
        if not password:
            raise ValidationError("Password must not be empty")
        try:
            address = Account.from_key(private_key).address
        except Exception:
            raise ValidationError("Invalid private key") from None

        accounts = self._load()
        if any(a.address.lower() == address.lower() for a in accounts):
            raise ValidationError(f"Account {address} already exists")

        payload = json.dumps({"privateKey": private_key, "address": address, "name": name})
        record = AccountRecord(
            id=uuid.uuid4().hex,
            name=name,
            address=address,
            account_type=account_type,
            encrypted=encrypt_secret(payload, password, self.iterations),
        )
        accounts.append(record)
        self._save(accounts)
        logger.info("Stored %s account %s (%s)", account_type, name, address)
        return record

    def import_private_key(
        self, name: str, private_key: str, password: str
    ) -> AccountRecord:
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        return self._add(name, private_key, password, "imported")

    def generate_account(self, name: str, password: str) -> AccountRecord:
        account = Account.create()
        return self._add(name, "0x" + bytes(account.key).hex(), password, "generated")

    def remove_account(self, account_id: str) -> None:
        accounts = self._load()
        remaining = [a for a in accounts if a.id != account_id]
        if len(remaining) == len(accounts):
            raise CredentialError(f"Account not found: {account_id}")
        self._save(remaining)

    def unlock(self, session: UserSession) -> str:
        """Return the private key for ``session``'s account."""
        if session.password is None:
            raise CredentialError("Session has already been used")
        record = self.get_account(session.account_id)
        data = json.loads(decrypt_secret(record.encrypted, session.password, self.iterations))
        private_key = data.get("privateKey")
        if not private_key:
            raise CredentialError(f"No private key stored for account {record.id}")
        return private_key


@contextmanager
def unlocked_key(keystore: Keystore, session: UserSession) -> Iterator[str]:
    """Yield the session account's private key; ``session`` is cleared on exit."""
    try:
        yield keystore.unlock(session)
    finally:
        session.clear()
