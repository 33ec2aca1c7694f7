#!/usr/bin/env python3
"""
Save Manager for MechScholar
Persists the player document to a primary store with a cookie-style fallback
"""

import base64
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote, unquote

from ..utils.clock import Clock, ensure_clock
from ..utils.exceptions import SaveFormatError, StorageError
from .backends import CookieJarBackend, FileBackend, KeyValueBackend
from .migration import CURRENT_FORMAT_VERSION, migrate_document, unwrap_envelope, wrap_envelope

logger = logging.getLogger(__name__)

DEFAULT_SAVE_KEY = "mechscholar_save"
DEFAULT_AUTO_SAVE_INTERVAL_MS = 30000


def encode_fallback(text: str) -> str:
    """URL-quote then base64 so the value is cookie-safe"""
    return base64.b64encode(quote(text, safe='').encode('ascii')).decode('ascii')


def decode_fallback(value: str) -> str:
    try:
        return unquote(base64.b64decode(value.encode('ascii'), validate=True).decode('ascii'))
    except (ValueError, UnicodeError) as e:
        raise SaveFormatError(f"Fallback save is not decodable: {e}") from e


class SaveManager:
    """
    Owns all save I/O.

    The primary backend is authoritative. The fallback receives a best-effort
    encoded copy on every save and is read only when the primary has nothing.
    All public methods log and return a sentinel instead of raising.
    """

    def __init__(self, primary: KeyValueBackend, fallback: Optional[KeyValueBackend] = None,
                 save_key: str = DEFAULT_SAVE_KEY, clock: Optional[Clock] = None):
        self.primary = primary
        self.fallback = fallback
        self.save_key = save_key
        self.clock = ensure_clock(clock)

        self._save_lock = threading.RLock()
        self._auto_save_thread: Optional[threading.Thread] = None
        self._auto_save_stop: Optional[threading.Event] = None

    # ------------------------------------------------------------------
    # Core persistence
    # ------------------------------------------------------------------

    def save(self, document: Dict[str, Any]) -> bool:
        """Serialize once and write to both backends"""
        with self._save_lock:
            try:
                envelope = wrap_envelope(document, self.clock.now_ms())
                text = json.dumps(envelope, separators=(',', ':'))
            except (TypeError, ValueError) as e:
                logger.error(f"Failed to serialize save: {e}")
                return False

            try:
                self.primary.set(self.save_key, text)
            except StorageError as e:
                logger.error(f"Failed to write save to {self.primary.name} storage: {e}")
                return False

            if self.fallback is not None:
                try:
                    self.fallback.set(self.save_key, encode_fallback(text))
                except StorageError as e:
                    logger.warning(f"Fallback {self.fallback.name} save skipped: {e}")

            logger.debug(f"Saved progress ({len(text)} bytes)")
            return True

    def _read_envelope(self) -> Optional[Dict[str, Any]]:
        """Raw envelope from the first backend that has one"""
        try:
            text = self.primary.get(self.save_key)
        except StorageError as e:
            logger.error(f"Failed to read {self.primary.name} save: {e}")
            text = None

        if text is None and self.fallback is not None:
            try:
                encoded = self.fallback.get(self.save_key)
                if encoded is not None:
                    text = decode_fallback(encoded)
                    logger.info(f"Loaded save from {self.fallback.name} fallback")
            except StorageError as e:
                logger.error(f"Failed to read {self.fallback.name} save: {e}")

        if text is None:
            return None

        try:
            envelope = json.loads(text)
        except ValueError as e:
            logger.error(f"Save is not valid JSON: {e}")
            return None

        return envelope if isinstance(envelope, dict) else None

    def load(self) -> Optional[Dict[str, Any]]:
        """Load and migrate the saved document"""
        envelope = self._read_envelope()
        if envelope is None:
            return None

        try:
            version, _, document = unwrap_envelope(envelope)
            if version != CURRENT_FORMAT_VERSION:
                logger.info(f"Save version {version} differs from {CURRENT_FORMAT_VERSION}, migrating")
            return migrate_document(document, version)
        except (SaveFormatError, TypeError, ValueError, KeyError, AttributeError) as e:
            logger.error(f"Failed to load save: {e}")
            return None

    def has_save(self) -> bool:
        for backend in (self.primary, self.fallback):
            if backend is None:
                continue
            try:
                if backend.has(self.save_key):
                    return True
            except StorageError as e:
                logger.error(f"Failed to check {backend.name} save: {e}")
        return False

    def clear(self) -> bool:
        success = True
        for backend in (self.primary, self.fallback):
            if backend is None:
                continue
            try:
                backend.delete(self.save_key)
            except StorageError as e:
                logger.error(f"Failed to clear {backend.name} save: {e}")
                success = False
        if success:
            logger.info("Save data cleared")
        return success

    def peek_info(self) -> Optional[Dict[str, Any]]:
        """Summary for a title screen, without handing out the document"""
        envelope = self._read_envelope()
        if envelope is None:
            return None

        try:
            version, saved_at, document = unwrap_envelope(envelope)
        except SaveFormatError as e:
            logger.error(f"Failed to read save info: {e}")
            return None

        character = document.get('character')
        if not isinstance(character, dict):
            character = {}
        last_played = None
        if isinstance(saved_at, (int, float)):
            last_played = datetime.fromtimestamp(saved_at / 1000.0).isoformat(timespec='seconds')

        weeks = document.get('weeks_completed', document.get('weeksCompleted', []))

        return {
            'format_version': version,
            'saved_at': saved_at,
            'last_played': last_played,
            'player_name': character.get('name') or 'Unknown Player',
            'weeks_completed': len(weeks) if isinstance(weeks, list) else 0,
            'total_score': document.get('total_score', document.get('totalScore', 0)),
            'coin_balance': document.get('coin_balance', document.get('coinBalance', 0)),
        }

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export(self) -> Optional[str]:
        """Pretty-printed envelope of the current save, or None"""
        document = self.load()
        if document is None:
            return None
        return json.dumps(wrap_envelope(document, self.clock.now_ms()), indent=2)

    def import_save(self, text: str) -> bool:
        try:
            envelope = json.loads(text)
            version, _, document = unwrap_envelope(envelope)
            migrate_document(document, version)
        except (TypeError, ValueError) as e:
            logger.error(f"Import rejected, not valid JSON: {e}")
            return False
        except SaveFormatError as e:
            logger.error(f"Import rejected: {e}")
            return False

        logger.info("Importing save data")
        return self.save(document)

    # ------------------------------------------------------------------
    # Auto-save
    # ------------------------------------------------------------------

    def enable_auto_save(self, source: Callable[[], Dict[str, Any]],
                         interval_ms: int = DEFAULT_AUTO_SAVE_INTERVAL_MS):
        """Start a background worker that saves ``source()`` every interval"""
        self.disable_auto_save()

        stop_event = threading.Event()
        interval = max(interval_ms, 1) / 1000.0

        def _auto_save_worker():
            while not stop_event.wait(interval):
                try:
                    self.save(source())
                except Exception as e:
                    logger.error(f"Auto-save error: {e}")

        thread = threading.Thread(target=_auto_save_worker, name="mechscholar-autosave", daemon=True)
        self._auto_save_stop = stop_event
        self._auto_save_thread = thread
        thread.start()
        logger.info(f"Auto-save enabled every {interval_ms} ms")

    def disable_auto_save(self):
        if self._auto_save_thread is None:
            return
        self._auto_save_stop.set()
        if self._auto_save_thread is not threading.current_thread():
            self._auto_save_thread.join(timeout=5)
        self._auto_save_thread = None
        self._auto_save_stop = None
        logger.info("Auto-save disabled")

    @property
    def auto_save_enabled(self) -> bool:
        return self._auto_save_thread is not None


def create_save_manager(storage_config, base_path: Path, clock: Optional[Clock] = None) -> SaveManager:
    """Build a file-backed SaveManager with a cookie-jar fallback from StorageConfig"""
    save_dir = Path(storage_config.save_path)
    if not save_dir.is_absolute():
        save_dir = Path(base_path) / save_dir

    primary = FileBackend(save_dir, encrypt=storage_config.encrypt_saves)
    fallback = CookieJarBackend(
        save_dir / storage_config.cookie_jar_name,
        max_bytes=storage_config.cookie_max_bytes,
        expiry_days=storage_config.cookie_expiry_days,
        clock=clock,
    )
    return SaveManager(primary, fallback, save_key=storage_config.save_key, clock=clock)
