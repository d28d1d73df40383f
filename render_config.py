"""
Render configuration models.

Pydantic models describing how a route is scaled, colored, and which
overlays are drawn. Optional sections replace show/hide flags: a present
`lap_panel` or `bottom_bar` is drawn, a missing one is not.

Scale and offsets are not range-checked. Values outside 0..1 push the
route off-canvas or distort it.
"""

import json
import logging
from typing import Callable, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from constants import (
    Font, NamedColor, NAMED_COLOR_BGR,
    IMAGE_LINE_THICKNESS, MAX_CANVAS_SIDE, VIDEO_LINE_THICKNESS,
)
from errors import ConfigError

logger = logging.getLogger(__name__)

ColorValue = Union[NamedColor, Tuple[int, int, int]]


def to_bgr(color: ColorValue) -> Tuple[int, int, int]:
    """Resolve a named color or BGR triple to a BGR triple."""
    if isinstance(color, NamedColor):
        return NAMED_COLOR_BGR[color]
    b, g, r = color
    return (int(b), int(g), int(r))


class ScaleOffset(BaseModel):
    """Route size and position as fractions of the canvas width."""
    scale: float = 0.2
    offset_x_pct: float = 0.1
    offset_y_pct: float = 0.1

    @classmethod
    def centered(cls) -> "ScaleOffset":
        return cls(scale=0.4, offset_x_pct=0.3, offset_y_pct=0.3)

    @classmethod
    def large(cls) -> "ScaleOffset":
        return cls(scale=0.7, offset_x_pct=0.15, offset_y_pct=0.15)


class ColorPalette(BaseModel):
    """Colors for the route line, position marker, text, and lap bars."""
    route: ColorValue = NamedColor.RED
    marker: ColorValue = NamedColor.GREEN
    text: ColorValue = NamedColor.WHITE
    bars: ColorValue = NamedColor.GREEN

    @classmethod
    def blue_scheme(cls) -> "ColorPalette":
        return cls(route=NamedColor.BLUE, marker=NamedColor.CYAN,
                   text=NamedColor.WHITE, bars=(255, 128, 0))

    @classmethod
    def neon_scheme(cls) -> "ColorPalette":
        return cls(route=NamedColor.MAGENTA, marker=NamedColor.YELLOW,
                   text=NamedColor.WHITE, bars=NamedColor.MAGENTA)


class PanelConfig(BaseModel):
    """Lap statistics panel settings."""
    position_pct: Tuple[float, float] = Field(
        default=(0.5, 0.09),
        description="Panel anchor as (x, y) fractions of canvas width/height",
    )
    font: Font = Font.SIMPLEX
    font_scale: float = Field(default=0.5, gt=0)
    thickness: int = Field(default=1, ge=1)
    text_color: ColorValue = NamedColor.WHITE
    bar_max_width: int = Field(default=200, ge=0)
    show_heart_rate: bool = True
    show_stride_length: bool = True
    show_pace_bars: bool = True


class BottomBarConfig(BaseModel):
    """Bottom pace/distance strip settings."""
    font: Font = Font.SIMPLEX
    font_scale: float = Field(default=0.5, gt=0)
    thickness: int = Field(default=1, ge=1)
    show_pace: bool = True
    show_distance: bool = True


class RenderConfig(BaseModel):
    """Complete settings for one image or video render."""
    scale_offset: ScaleOffset = Field(default_factory=ScaleOffset)
    colors: ColorPalette = Field(default_factory=ColorPalette)
    lap_panel: Optional[PanelConfig] = Field(default_factory=PanelConfig)
    bottom_bar: Optional[BottomBarConfig] = Field(default_factory=BottomBarConfig)
    show_route: bool = True
    line_thickness: int = Field(default=VIDEO_LINE_THICKNESS, ge=1)
    image_line_thickness: int = Field(default=IMAGE_LINE_THICKNESS, ge=1)
    max_canvas_side: int = Field(default=MAX_CANVAS_SIDE, gt=0)

    @property
    def show_lap_panel(self) -> bool:
        return self.lap_panel is not None

    @property
    def show_bottom_bar(self) -> bool:
        return self.bottom_bar is not None

    @classmethod
    def minimalist(cls) -> "RenderConfig":
        return cls(
            lap_panel=PanelConfig(show_heart_rate=False, show_stride_length=False),
            bottom_bar=BottomBarConfig(font_scale=0.5, thickness=1, show_distance=False),
        )

    @classmethod
    def detailed(cls) -> "RenderConfig":
        return cls(
            scale_offset=ScaleOffset.large(),
            lap_panel=PanelConfig(position_pct=(0.5, 0.07)),
            bottom_bar=BottomBarConfig(font=Font.DUPLEX, font_scale=0.8, thickness=2),
        )

    @classmethod
    def neon(cls) -> "RenderConfig":
        return cls(scale_offset=ScaleOffset.centered(), colors=ColorPalette.neon_scheme())

    @classmethod
    def blue(cls) -> "RenderConfig":
        return cls(colors=ColorPalette.blue_scheme())


PRESETS: Dict[str, Callable[[], RenderConfig]] = {
    "default": RenderConfig,
    "minimalist": RenderConfig.minimalist,
    "detailed": RenderConfig.detailed,
    "neon": RenderConfig.neon,
    "blue": RenderConfig.blue,
}


def get_preset(name: str) -> RenderConfig:
    """
    Build a named preset configuration.

    Raises:
        ConfigError: If the preset name is unknown
    """
    try:
        factory = PRESETS[name.lower()]
    except KeyError:
        raise ConfigError(
            f"Unknown preset '{name}'. Available: {', '.join(sorted(PRESETS))}"
        ) from None
    return factory()


def parse_render_config(data: Union[str, bytes, dict]) -> RenderConfig:
    """
    Validate a JSON document (or already-decoded dict) into a RenderConfig.

    Missing keys take their defaults; `"lap_panel": null` hides the panel.

    Raises:
        ConfigError: On malformed JSON or values of the wrong type
    """
    try:
        if isinstance(data, dict):
            return RenderConfig.model_validate(data)
        return RenderConfig.model_validate_json(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid render configuration: {e}") from e


def load_render_config(path: str) -> RenderConfig:
    """Load and validate a JSON configuration file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Configuration file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a JSON object")

    config = parse_render_config(raw)
    logger.debug(f"Loaded render configuration from {path}")
    return config
