#!/usr/bin/env python3
"""
Key/value storage backends for MechScholar saves
A durable file store (optionally encrypted), a size-limited cookie jar and an in-memory store
"""

import base64
import json
import os
import re
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..utils.clock import Clock, ensure_clock
from ..utils.exceptions import SaveFormatError, StorageError, StorageQuotaExceeded

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")

# Characters a cookie value may hold without escaping
COOKIE_VALUE_PATTERN = re.compile(r"^[A-Za-z0-9+/=%_.\-~]*$")


def _check_key(key: str):
    if not isinstance(key, str) or not KEY_PATTERN.match(key):
        raise StorageError(f"Invalid storage key: {key!r}")


class KeyValueBackend:
    """Minimal string key/value store interface"""

    name = "backend"

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError

    def has(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryBackend(KeyValueBackend):
    """In-process store with an optional per-value quota"""

    name = "memory"

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str):
        if self.max_bytes is not None and len(value.encode('utf-8')) > self.max_bytes:
            raise StorageQuotaExceeded(
                f"Value for '{key}' is {len(value.encode('utf-8'))} bytes, limit is {self.max_bytes}"
            )
        with self._lock:
            self._data[key] = value

    def delete(self, key: str):
        with self._lock:
            self._data.pop(key, None)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._data


class FileBackend(KeyValueBackend):
    """
    Durable store with one file per key.

    With ``encrypt=True`` values are Fernet-encrypted using a key derived via
    PBKDF2 from machine-specific data and a per-directory salt.
    """

    name = "file"

    def __init__(self, save_dir: Path, encrypt: bool = False):
        self.save_dir = Path(save_dir)
        self.save_dir.mkdir(parents=True, exist_ok=True)
        self.encrypt = encrypt
        self._lock = threading.Lock()

        self.key_file = self.save_dir / '.storage_key'
        self.salt_file = self.save_dir / '.storage_salt'
        self.cipher_suite: Optional[Fernet] = None

        if encrypt:
            self._init_encryption()

    def _init_encryption(self):
        """Initialize or load encryption keys"""
        if self.key_file.exists() and self.salt_file.exists():
            self.load_encryption_key()
        else:
            self.generate_encryption_key()

    def generate_encryption_key(self):
        """Generate a new encryption key"""
        salt = os.urandom(16)
        with open(self.salt_file, 'wb') as f:
            f.write(salt)

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self._generate_system_key().encode()))

        with open(self.key_file, 'wb') as f:
            f.write(key)

        if os.name != 'nt':
            os.chmod(self.key_file, 0o600)
            os.chmod(self.salt_file, 0o600)

        self.cipher_suite = Fernet(key)
        logger.info(f"Generated save encryption key in {self.save_dir}")

    def load_encryption_key(self):
        """Load existing encryption key"""
        try:
            with open(self.key_file, 'rb') as f:
                key = f.read()
            self.cipher_suite = Fernet(key)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading encryption key, regenerating: {e}")
            self.generate_encryption_key()

    def _generate_system_key(self) -> str:
        """Generate a system-specific key component"""
        components = [
            os.getenv('USERNAME', os.getenv('USER', 'default')),
            os.getenv('COMPUTERNAME', os.getenv('HOSTNAME', 'localhost')),
            str(Path.home()),
        ]
        return '|'.join(components) + '|mechscholar-saves'

    def _path_for(self, key: str) -> Path:
        _check_key(key)
        suffix = '.enc' if self.encrypt else '.json'
        return self.save_dir / f"{key}{suffix}"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                raw = path.read_bytes()
            except OSError as e:
                raise StorageError(f"Could not read {path}: {e}") from e

        if self.cipher_suite is not None:
            try:
                raw = self.cipher_suite.decrypt(raw)
            except InvalidToken as e:
                raise SaveFormatError(f"Could not decrypt {path}") from e

        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise SaveFormatError(f"{path} is not valid UTF-8") from e

    def set(self, key: str, value: str):
        path = self._path_for(key)
        payload = value.encode('utf-8')
        if self.cipher_suite is not None:
            payload = self.cipher_suite.encrypt(payload)

        # Write then rename so a crash never leaves a half-written save
        tmp_path = path.with_name(path.name + '.tmp')
        with self._lock:
            try:
                with open(tmp_path, 'wb') as f:
                    f.write(payload)
                if os.name != 'nt':
                    os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, path)
            except OSError as e:
                raise StorageError(f"Could not write {path}: {e}") from e

    def delete(self, key: str):
        path = self._path_for(key)
        with self._lock:
            try:
                if path.exists():
                    path.unlink()
            except OSError as e:
                raise StorageError(f"Could not delete {path}: {e}") from e

    def has(self, key: str) -> bool:
        return self._path_for(key).exists()


class CookieJarBackend(KeyValueBackend):
    """
    Size-constrained fallback store modelled on browser cookies.

    Records live in a single JSON jar file as ``{name: {value, expires}}``.
    Values must be cookie-safe text and no larger than ``max_bytes``.
    Expired records read as absent.
    """

    name = "cookie"

    def __init__(self, jar_path: Path, max_bytes: int = 4096,
                 expiry_days: int = 365, clock: Optional[Clock] = None):
        self.jar_path = Path(jar_path)
        self.jar_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes
        self.expiry_ms = expiry_days * 24 * 60 * 60 * 1000
        self.clock = ensure_clock(clock)
        self._lock = threading.Lock()

    def _read_jar(self) -> Dict[str, Dict]:
        if not self.jar_path.exists():
            return {}
        try:
            with open(self.jar_path, 'r', encoding='utf-8') as f:
                jar = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Cookie jar {self.jar_path} unreadable, starting empty: {e}")
            return {}
        return jar if isinstance(jar, dict) else {}

    def _write_jar(self, jar: Dict[str, Dict]):
        try:
            with open(self.jar_path, 'w', encoding='utf-8') as f:
                json.dump(jar, f)
        except OSError as e:
            raise StorageError(f"Could not write cookie jar {self.jar_path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        _check_key(key)
        with self._lock:
            record = self._read_jar().get(key)
        if not isinstance(record, dict):
            return None
        expires = record.get('expires', 0)
        if expires <= self.clock.now_ms():
            return None
        return record.get('value')

    def set(self, key: str, value: str):
        _check_key(key)
        if not COOKIE_VALUE_PATTERN.match(value):
            raise StorageError(f"Cookie value for '{key}' contains unsafe characters")
        size = len(key) + 1 + len(value)
        if size > self.max_bytes:
            raise StorageQuotaExceeded(f"Cookie '{key}' is {size} bytes, limit is {self.max_bytes}")

        with self._lock:
            jar = self._read_jar()
            jar[key] = {'value': value, 'expires': self.clock.now_ms() + self.expiry_ms}
            self._write_jar(jar)

    def delete(self, key: str):
        _check_key(key)
        with self._lock:
            jar = self._read_jar()
            if jar.pop(key, None) is not None:
                self._write_jar(jar)
