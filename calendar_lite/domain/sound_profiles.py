"""Sound profile catalog for reminder alerts.

A sound profile is an opaque key chosen in settings; the presentation layer
plays the file the key maps to. Unknown keys fall back to the default profile.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SOUND_PROFILE = "telegram"

NOTIFICATION_SOUNDS: dict[str, str] = {
    "telegram": "sounds/telegram.mp3",
    "chime": "sounds/chime.mp3",
    "bell": "sounds/bell.mp3",
    "digital": "sounds/digital.mp3",
    "silent": "",
}


class SoundCatalog:
    """Maps sound profile keys to sound files."""

    def __init__(
        self,
        sounds: Optional[Mapping[str, str]] = None,
        default_profile: str = DEFAULT_SOUND_PROFILE,
    ):
        self._sounds = dict(NOTIFICATION_SOUNDS if sounds is None else sounds)
        if default_profile not in self._sounds:
            raise ValueError(f"Default sound profile {default_profile!r} is not in the catalog")
        self.default_profile = default_profile
        self._warned: set[str] = set()

    def profiles(self) -> list[str]:
        return sorted(self._sounds)

    def resolve(self, profile: Optional[str]) -> tuple[str, str]:
        """Return ``(profile, sound_file)``, substituting the default for unknown keys.

        Each unknown key is logged once.
        """
        if profile and profile in self._sounds:
            return profile, self._sounds[profile]

        if profile and profile not in self._warned:
            self._warned.add(profile)
            logger.warning(
                "Unknown sound profile %r; using %r", profile, self.default_profile
            )
        return self.default_profile, self._sounds[self.default_profile]
