from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict, Field

from .common import LedgerModel


class LedgerSettings(LedgerModel):
    """User preferences. Keys written by other clients are kept untouched."""

    model_config = ConfigDict(extra="allow")

    late_days: int = 30
    notify_on_late: bool = True
    dark_mode: bool = False
    auto_save: bool = False
    show_notifications: bool = True
    items_per_page: int = 20
    date_format: str = "en-GB"
    browser_notifications: bool = False
    auto_backup: bool = False
    font_size: str = "medium"
    compact_mode: bool = False

    @property
    def effective_late_days(self) -> int:
        return self.late_days if self.late_days and self.late_days > 0 else 30


class LedgerSettingsUpdate(LedgerModel):
    late_days: Optional[int] = Field(default=None, ge=1, le=3650)
    notify_on_late: Optional[bool] = None
    dark_mode: Optional[bool] = None
    auto_save: Optional[bool] = None
    show_notifications: Optional[bool] = None
    items_per_page: Optional[int] = Field(default=None, ge=1, le=500)
    date_format: Optional[str] = Field(default=None, max_length=16)
    browser_notifications: Optional[bool] = None
    auto_backup: Optional[bool] = None
    font_size: Optional[str] = Field(default=None, max_length=16)
    compact_mode: Optional[bool] = None
