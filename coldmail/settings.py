# coldmail/settings.py

"""
Persistent requester profiles.

Settings live in a JSON file in the platform user-data directory
(override with COLDMAIL_SETTINGS, or move the whole data directory with
COLDMAIL_HOME). The file holds several named profiles and remembers the
active one:

    {
      "schema_version": 1,
      "active_profile": "Default",
      "profile_order": ["Default"],
      "profiles": {"Default": {...}}
    }
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from appdirs import user_data_dir

from coldmail.errors import SettingsError
from coldmail.models import RequestContext

logger = logging.getLogger(__name__)

APP_NAME = "ColdMail"
APP_AUTHOR = "ColdMail"
SETTINGS_FILE_NAME = "coldmail_settings.json"

# Settings schema version for future compatibility
SCHEMA_VERSION = 1

DEFAULT_PROFILE_NAME = "Default"
DISPATCHERS = ("gmail", "outlook", "eml")


def data_dir() -> Path:
    override = os.environ.get("COLDMAIL_HOME")
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


def settings_path() -> Path:
    override = os.environ.get("COLDMAIL_SETTINGS")
    if override:
        return Path(override).expanduser()
    return data_dir() / SETTINGS_FILE_NAME


def tokens_dir() -> Path:
    return data_dir() / "tokens"


def default_profile() -> Dict:
    return {
        "full_name": "",
        "phone": "",
        "linkedin": "",
        "resources_dir": "",
        "dispatcher": "gmail",
        "eml_dir": "",
        "sender_email": "",
        "client_secrets": "",
    }


class Settings:
    """In-memory view of the settings file."""

    def __init__(self, profiles: Optional[Dict[str, Dict]] = None, profile_order: Optional[List[str]] = None, active_profile: str = DEFAULT_PROFILE_NAME):
        self.profiles = profiles or {DEFAULT_PROFILE_NAME: default_profile()}
        self.profile_order = profile_order or list(self.profiles.keys())
        self.active_profile = active_profile if active_profile in self.profiles else self.profile_order[0]

    def profile(self, name: Optional[str] = None) -> Dict:
        name = name or self.active_profile
        if name not in self.profiles:
            raise SettingsError(f"Unknown profile: {name}")
        return self.profiles[name]

    def update_profile(self, name: Optional[str] = None, **values) -> Dict:
        """Create or update a profile; None values are left untouched."""
        name = name or self.active_profile
        prof = self.profiles.setdefault(name, default_profile())
        if name not in self.profile_order:
            self.profile_order.append(name)

        for key, value in values.items():
            if key not in prof:
                raise SettingsError(f"Unknown profile setting: {key}")
            if value is not None:
                prof[key] = value

        if prof["dispatcher"] not in DISPATCHERS:
            raise SettingsError(f"Unknown dispatcher {prof['dispatcher']!r}; expected one of {', '.join(DISPATCHERS)}")
        return prof

    def to_dict(self) -> Dict:
        return {
            "schema_version": SCHEMA_VERSION,
            "active_profile": self.active_profile,
            "profile_order": self.profile_order,
            "profiles": self.profiles,
        }


# ============================================================
# load / save
# ============================================================

def _normalize(data: Dict) -> Settings:
    profiles = data.get("profiles") or {DEFAULT_PROFILE_NAME: default_profile()}

    # Normalize and validate all profiles
    for k, v in list(profiles.items()):
        if not isinstance(v, dict):
            profiles[k] = default_profile()
            continue
        for key, value in default_profile().items():
            v.setdefault(key, value)

    order = [n for n in (data.get("profile_order") or []) if n in profiles]
    for name in profiles.keys():
        if name not in order:
            order.append(name)

    active = data.get("active_profile")
    if not active or active not in profiles:
        active = order[0]

    return Settings(profiles, order, active)


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from disk.

    A missing file gives defaults; so does a corrupted one (with a warning).
    """
    path = Path(path) if path else settings_path()
    if not path.exists():
        return Settings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Settings file {path} is unreadable, using defaults: {e}")
        return Settings()

    if not isinstance(data, dict):
        logger.warning(f"Settings file {path} has an unexpected layout, using defaults")
        return Settings()

    return _normalize(data)


def _atomic_save_json(path: Path, data: Dict) -> None:
    """Write JSON to a temp file beside `path`, then move it into place."""
    p = Path(path).expanduser()
    parent = p.parent
    tmp_path = None

    try:
        parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(parent),
            prefix=p.name + ".",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(p))
    except Exception:
        if tmp_path and tmp_path.exists():
            tmp_path.unlink()
        raise


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    path = Path(path) if path else settings_path()
    _atomic_save_json(path, settings.to_dict())
    logger.info(f"Settings saved to {path}")
    return path


# ============================================================
# request context
# ============================================================

def request_context_for(
    profile: Dict,
    *,
    full_name: Optional[str] = None,
    phone: Optional[str] = None,
    linkedin: Optional[str] = None,
    resource_location=None,
) -> RequestContext:
    """
    Build a RequestContext from a profile, with explicit values taking precedence.

    Raises:
        SettingsError: no requester name, phone or resource location.
    """
    name = full_name if full_name is not None else profile.get("full_name", "")
    phone_value = phone if phone is not None else profile.get("phone", "")
    linkedin_value = linkedin if linkedin is not None else profile.get("linkedin", "")
    location = resource_location if resource_location is not None else profile.get("resources_dir", "")

    missing = []
    if not (name or "").strip():
        missing.append("full name")
    if not (phone_value or "").strip():
        missing.append("phone")
    if not location:
        missing.append("resources folder or uploaded files")
    if missing:
        raise SettingsError(f"Missing required setting(s): {', '.join(missing)}")

    return RequestContext(
        requester_full_name=name.strip(),
        requester_phone=phone_value.strip(),
        resource_location=location,
        requester_linkedin=(linkedin_value or "").strip(),
    )
