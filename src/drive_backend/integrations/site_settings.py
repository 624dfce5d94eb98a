from __future__ import annotations

from drive_backend.config import Settings
from drive_backend.domain.collaborators import PwaIcons, SiteIdentity


class SettingsSiteProvider:
    """Site identity and canonical URL sourced from application settings."""

    def __init__(self, app_settings: Settings) -> None:
        self._settings: Settings = app_settings

    def site_basic(self) -> SiteIdentity:
        return SiteIdentity(
            name=self._settings.site_name,
            description=self._settings.site_description,
        )

    def site_url(self) -> str:
        # Trailing slash so relative icon paths resolve under the site root.
        return self._settings.public_base_url.rstrip("/") + "/"

    def pwa_icons(self) -> PwaIcons:
        return PwaIcons(
            large=self._settings.pwa_large_icon,
            medium=self._settings.pwa_medium_icon,
        )
