"""
Per-lap statistics panel.

The panel is laid out once per render: a header row, then one row per lap
with the indexed pace, heart rate, stride length and a pace bar whose
length is relative to the fastest lap's 30 second bucket. Layout is pure
(positions only); LapPanelOverlay draws it onto the persistent buffer.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from constants import (
    PANEL_BAR_GUTTER, PANEL_HEADER_COLOR, PANEL_HEADER_COLUMNS, PANEL_HEADER_FONT_SCALE,
    PANEL_HEADER_RISE, PANEL_HEADER_THICKNESS, PANEL_HEART_RATE_OFFSET, PANEL_ROW_SPACING,
    PANEL_STRIDE_OFFSET,
)
from overlays import Measure, Overlay, RectItem, TextItem
from pace import format_stride, lap_label, pace_baseline, pace_percentages, pace_to_seconds
from render_config import ColorValue, PanelConfig, to_bgr
from route_data.data_models import CanvasSpec, LapStat
from visualization import Drawer

logger = logging.getLogger(__name__)

# Header labels that belong to an optional column
_HEADER_COLUMN_FLAGS = {
    "BAR": "show_pace_bars",
    "HR": "show_heart_rate",
    "LENGTH": "show_stride_length",
}


@dataclass(frozen=True)
class LapRow:
    """Positioned content of one lap row."""
    pace: TextItem
    heart_rate: Optional[TextItem]
    stride: Optional[TextItem]
    bar: Optional[RectItem]
    percentage: float


@dataclass
class LapPanelLayout:
    anchor: tuple
    header: List[TextItem] = field(default_factory=list)
    rows: List[LapRow] = field(default_factory=list)
    baseline: Optional[float] = None


def panel_anchor(panel: PanelConfig, canvas: CanvasSpec) -> tuple:
    px, py = panel.position_pct
    return int(px * canvas.width), int(py * canvas.height)


def layout_header(panel: PanelConfig, anchor_x: int, anchor_y: int) -> List[TextItem]:
    """Header labels for the enabled columns, positioned around the anchor."""
    items = []
    for label, offset in PANEL_HEADER_COLUMNS:
        flag = _HEADER_COLUMN_FLAGS.get(label)
        if flag is not None and not getattr(panel, flag):
            continue
        items.append(TextItem(label, anchor_x + offset, anchor_y - PANEL_HEADER_RISE))
    return items


def layout_lap_panel(laps: Sequence[LapStat], panel: PanelConfig, canvas: CanvasSpec,
                     measure: Measure) -> LapPanelLayout:
    """
    Compute every position in the lap panel.

    Each row is centred on the anchor by the width of its bare pace label,
    while the text drawn there is the index-padded label, so pace columns
    line up across rows regardless of index width.

    Args:
        laps: Per-lap statistics in lap order
        panel: Panel settings (anchor, font metrics, visible columns)
        canvas: Target canvas
        measure: text -> (width, height) for the panel's font settings

    Returns:
        LapPanelLayout; rows is empty and baseline None for no laps

    Raises:
        InputError: If a lap's pace label is malformed
    """
    anchor_x, anchor_y = panel_anchor(panel, canvas)
    layout = LapPanelLayout(anchor=(anchor_x, anchor_y),
                            header=layout_header(panel, anchor_x, anchor_y))
    if not laps:
        return layout

    seconds = [pace_to_seconds(lap.pace_label) for lap in laps]
    percentages = pace_percentages(seconds)
    layout.baseline = pace_baseline(seconds)

    total = len(laps)
    for i, lap in enumerate(laps):
        w, h = measure(lap.pace_label)
        x = anchor_x - w // 2
        y = anchor_y + i * (h + PANEL_ROW_SPACING)

        heart_rate = None
        if panel.show_heart_rate:
            heart_rate = TextItem(str(lap.avg_heart_rate), x + PANEL_HEART_RATE_OFFSET, y)
        stride = None
        if panel.show_stride_length:
            stride = TextItem(format_stride(lap.avg_step_length), x + PANEL_STRIDE_OFFSET, y)
        bar = None
        if panel.show_pace_bars:
            bar = RectItem(x + w + PANEL_BAR_GUTTER, y - h,
                           int(percentages[i] * panel.bar_max_width), h)

        layout.rows.append(LapRow(
            pace=TextItem(lap_label(total, i + 1, lap.pace_label), x, y),
            heart_rate=heart_rate,
            stride=stride,
            bar=bar,
            percentage=percentages[i],
        ))
    return layout


class LapPanelOverlay(Overlay):
    """Draws the lap panel; intended for the persistent buffer, once per render."""

    def __init__(self, drawer: Optional[Drawer] = None, config: Optional[PanelConfig] = None,
                 bar_color: ColorValue = (0, 255, 0)):
        super().__init__(drawer)
        self.config = config or PanelConfig()
        self.bar_color = to_bgr(bar_color)
        self.text_color = to_bgr(self.config.text_color)
        self.header_color = to_bgr(PANEL_HEADER_COLOR)

    def layout(self, laps: Sequence[LapStat], canvas: CanvasSpec) -> LapPanelLayout:
        measure = self.drawer.measure(self.config.font, self.config.font_scale,
                                      self.config.thickness)
        return layout_lap_panel(laps, self.config, canvas, measure)

    def draw(self, canvas: np.ndarray, laps: Sequence[LapStat]) -> np.ndarray:
        height, width = canvas.shape[:2]
        layout = self.layout(laps, CanvasSpec(width=width, height=height))

        for item in layout.header:
            self.drawer.text(canvas, item.text, (item.x, item.y), PANEL_HEADER_FONT_SCALE,
                             PANEL_HEADER_THICKNESS, self.header_color, self.config.font)

        cfg = self.config
        for row in layout.rows:
            for item in (row.pace, row.heart_rate, row.stride):
                if item is not None:
                    self.drawer.text(canvas, item.text, (item.x, item.y), cfg.font_scale,
                                     cfg.thickness, self.text_color, cfg.font)
            if row.bar is not None:
                self.drawer.filled_rect(canvas, row.bar.x, row.bar.y, row.bar.width,
                                        row.bar.height, self.bar_color)

        logger.debug(f"Drew lap panel with {len(layout.rows)} rows at {layout.anchor}")
        return canvas
