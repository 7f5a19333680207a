import os
import logging
import tempfile
from pathlib import Path
import yaml
from dotenv import load_dotenv

# Set up logger
logger = logging.getLogger(__name__)

# Load .env before anything reads the environment
load_dotenv()

# Define config path
USER_CONFIG_PATH = Path(os.getenv("GOOGLE_SEARCH_CONFIG", Path.cwd() / "config.yaml"))

# Default configuration values to use as fallbacks
DEFAULT_CONFIG = {
    # --- Logging --- #
    "LOG_LEVEL": "INFO",
    "LOG_DIR": str(Path(tempfile.gettempdir()) / "google-search-logs"),
    "LOG_FILE_NAME": "google-search.log",

    # --- Session State --- #
    "STATE_FILE": "./browser-state.json",
    "SERVER_STATE_FILE": "~/.google-search-browser-state.json",

    # --- Search Defaults --- #
    "SEARCH_TIMEOUT": 60000,  # ms, library default
    "CLI_TIMEOUT": 30000,     # ms
    "SERVER_TIMEOUT": 30000,  # ms
    "RESULT_LIMIT": 10,
    "DEFAULT_LOCALE": "en-US",
    "SEARCH_DOMAINS": [
        "https://www.google.com",
        "https://www.google.co.uk",
        "https://www.google.ca",
        "https://www.google.com.au",
    ],

    # --- Escalation --- #
    "MAX_BROWSER_ATTEMPTS": 2,  # one headless attempt plus one headed retry

    # --- Human-like Timing (ms) --- #
    "TYPING_DELAY_MS": [10, 30],
    "SUBMIT_PAUSE_MS": [100, 300],
    "RESULTS_SETTLE_DELAY_MS": [200, 500],
    "HTML_STABILIZE_DELAY_MS": 1000,

    # --- HTML Capture --- #
    "HTML_OUTPUT_DIR": "./google-search-html",
}


def load_config(config_path: Path = USER_CONFIG_PATH) -> dict:
    """Load configuration from config.yaml in working directory.
    If keys are missing, fall back to default values.

    LOG_LEVEL may additionally be overridden from the environment.
    """
    # Start with default config values
    config = DEFAULT_CONFIG.copy()

    # Load user config if exists
    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f)
            if user_config:
                # Merge user config with defaults, overwriting defaults
                for key, value in user_config.items():
                    config[key] = value
                logger.info(f"Loaded config from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}")
    else:
        logger.debug(f"No config.yaml found at {config_path}. Using default values.")

    if os.getenv("LOG_LEVEL"):
        config["LOG_LEVEL"] = os.getenv("LOG_LEVEL")

    # stdout carries CLI output and the MCP stdio channel, so report via the logger only
    logger.debug(
        f"Settings loaded: timeout={config['SEARCH_TIMEOUT']}ms, limit={config['RESULT_LIMIT']}, "
        f"state file={config['STATE_FILE']}, max attempts={config['MAX_BROWSER_ATTEMPTS']}"
    )
    return config

# Load the configuration
config = load_config()

# Export all config values as module variables
for key, value in config.items():
    globals()[key] = value

# --- Global Variables (Derived) --- #
SERVER_STATE_PATH = Path(os.path.expanduser(config["SERVER_STATE_FILE"]))
LOG_FILE_PATH = Path(config["LOG_DIR"]) / config["LOG_FILE_NAME"]
