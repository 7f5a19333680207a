import logging
import os
import platform
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

from google_search.config.settings import DEFAULT_LOCALE
from google_search.models import FingerprintProfile

logger = logging.getLogger(__name__)

DESKTOP_DEVICES = ("Desktop Chrome", "Desktop Edge", "Desktop Firefox", "Desktop Safari")
DEFAULT_DEVICE = "Desktop Chrome"

# platform.system() -> device persona matching the host OS
OS_DEVICE_PERSONAS = {
    "Darwin": "Desktop Safari",
    "Windows": "Desktop Edge",
    "Linux": "Desktop Firefox",
}

# (lower bound inclusive, upper bound exclusive or None) in minutes east of UTC
TIMEZONE_BUCKETS = (
    (480, 540, "Asia/Shanghai"),
    (540, None, "Asia/Tokyo"),
    (420, 480, "Asia/Bangkok"),
    (0, 60, "Europe/London"),
    (60, 120, "Europe/Berlin"),
    (-300, -240, "America/New_York"),
)
DEFAULT_TIMEZONE = "America/New_York"


def timezone_for_offset(offset_minutes: int) -> str:
    """Map a UTC offset (minutes east of UTC) to a representative IANA zone."""
    for lower, upper, zone in TIMEZONE_BUCKETS:
        if offset_minutes >= lower and (upper is None or offset_minutes < upper):
            return zone
    return DEFAULT_TIMEZONE


def color_scheme_for_hour(hour: int) -> str:
    return "dark" if hour >= 19 or hour < 7 else "light"


def normalize_locale(value: Optional[str]) -> Optional[str]:
    """Turn a POSIX locale such as ``en_US.UTF-8`` into ``en-US``.

    Returns None for empty values and the ``C`` / ``POSIX`` locales.
    """
    if not value:
        return None
    base = value.split(".")[0].split("@")[0]
    if not base or base in ("C", "POSIX"):
        return None
    return base.replace("_", "-")


def _local_now() -> datetime:
    return datetime.now().astimezone()


class FingerprintManager:
    """Reuses a persisted fingerprint or synthesizes one from host signals.

    The clock, OS name and environment are injectable so profiles can be
    generated deterministically in tests.
    """

    def __init__(
        self,
        known_devices: Sequence[str] = DESKTOP_DEVICES,
        clock: Callable[[], datetime] = _local_now,
        system: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.known_devices = tuple(known_devices)
        self.clock = clock
        self.system = system if system is not None else platform.system()
        self.environ = environ if environ is not None else os.environ

    def is_recognized(self, profile: Optional[FingerprintProfile]) -> bool:
        return profile is not None and profile.device_name in self.known_devices

    def resolve(self, persisted: Optional[FingerprintProfile] = None, locale_hint: Optional[str] = None) -> FingerprintProfile:
        """Return the persisted profile when it is usable, otherwise a freshly generated one.

        Args:
            persisted: Profile loaded from the session state, if any.
            locale_hint: Locale requested by the caller; used only for new profiles.

        Returns:
            The persisted object itself when recognized, else a new FingerprintProfile.
        """
        if self.is_recognized(persisted):
            logger.info(f"Using saved browser fingerprint: device={persisted.device_name}, locale={persisted.locale}")
            return persisted
        if persisted is not None:
            logger.warning(f"Saved fingerprint uses unknown device '{persisted.device_name}', generating a new one")
        return self.generate(locale_hint)

    def generate(self, locale_hint: Optional[str] = None) -> FingerprintProfile:
        now = self.clock()
        offset = now.utcoffset()
        offset_minutes = int(offset.total_seconds() // 60) if offset is not None else 0
        locale = (
            locale_hint
            or normalize_locale(self.environ.get("LC_ALL"))
            or normalize_locale(self.environ.get("LANG"))
            or DEFAULT_LOCALE
        )
        profile = FingerprintProfile(
            device_name=OS_DEVICE_PERSONAS.get(self.system, DEFAULT_DEVICE),
            locale=locale,
            timezone_id=timezone_for_offset(offset_minutes),
            color_scheme=color_scheme_for_hour(now.hour),
            reduced_motion="no-preference",
            forced_colors="none",
        )
        logger.info(
            f"Generated new browser fingerprint: device={profile.device_name}, locale={profile.locale}, "
            f"timezone={profile.timezone_id}, color scheme={profile.color_scheme}"
        )
        return profile
