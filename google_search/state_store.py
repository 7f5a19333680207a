import json
import logging
from pathlib import Path
from typing import Union

from playwright.async_api import BrowserContext, Error as PlaywrightError
from pydantic import ValidationError

from google_search.models import SessionState

logger = logging.getLogger(__name__)


def fingerprint_path_for(state_file: Union[str, Path]) -> Path:
    """Side-file path for the session JSON, derived from the storage-state path."""
    raw = str(state_file)
    if raw.endswith(".json"):
        return Path(raw[:-len(".json")] + "-fingerprint.json")
    return Path(raw + "-fingerprint.json")


class SessionStateStore:
    """Loads and saves the fingerprint/domain side file and the Playwright storage state.

    Both files are keyed off the same base path. Nothing here raises on I/O
    problems; failures are logged and reported through the return values.
    """

    def __init__(self, state_file: Union[str, Path]):
        self.storage_state_file = Path(state_file)
        self.fingerprint_file = fingerprint_path_for(state_file)

    def has_storage_state(self) -> bool:
        return self.storage_state_file.exists()

    def load(self) -> SessionState:
        if not self.fingerprint_file.exists():
            logger.info(f"No saved session state at {self.fingerprint_file}, starting fresh")
            return SessionState()
        try:
            data = json.loads(self.fingerprint_file.read_text(encoding="utf-8"))
            state = SessionState.model_validate(data)
            logger.info(f"Loaded saved session state from {self.fingerprint_file}")
            return state
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Could not load session state from {self.fingerprint_file}, starting fresh: {e}")
            return SessionState()

    def save(self, state: SessionState) -> bool:
        try:
            self.fingerprint_file.parent.mkdir(parents=True, exist_ok=True)
            self.fingerprint_file.write_text(state.to_json(), encoding="utf-8")
            logger.info(f"Session state saved to {self.fingerprint_file}")
            return True
        except OSError as e:
            logger.error(f"Failed to save session state: {e}")
            return False

    async def save_storage_state(self, context: BrowserContext) -> bool:
        try:
            self.storage_state_file.parent.mkdir(parents=True, exist_ok=True)
            await context.storage_state(path=str(self.storage_state_file))
            logger.info(f"Browser storage state saved to {self.storage_state_file}")
            return True
        except (OSError, PlaywrightError) as e:
            logger.error(f"Failed to save browser storage state: {e}")
            return False
