from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BadgeConfig:
    """Fixed badge geometry. All sizes are SVG user units."""

    width: int = 400
    header_height: int = 80
    entry_gap: int = 20
    base_entry_height: int = 80
    avatar_x: int = 20
    avatar_size: int = 30
    avatar_offset_y: int = 25
    text_gap_x: int = 15
    line_height: int = 12
    text_max_length: int = 55
    name_max_length: int = 20
    name_truncate_to: int = 17
    error_width: int = 400
    error_height: int = 100

    @property
    def text_x(self) -> int:
        return self.avatar_x + self.avatar_size + self.text_gap_x

    @property
    def avatar_radius(self) -> int:
        return self.avatar_size // 2


DEFAULT_BADGE_CONFIG = BadgeConfig()
