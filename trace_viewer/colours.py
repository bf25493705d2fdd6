"""Colour assignment for span bars, scoped to a single view."""

from typing import Dict, List, Optional

# Based on the jaeger ui colour palette.
PALETTE: List[str] = [
    "#17B8BE",
    "#F8DCA1",
    "#B7885E",
    "#FFCB99",
    "#F89570",
    "#829AE3",
    "#E79FD5",
    "#1E96BE",
    "#89DAC1",
    "#B3AD9E",
    "#12939A",
    "#DDB27C",
    "#88572C",
    "#FF9833",
    "#EF5D28",
    "#162A65",
    "#DA70BF",
    "#125C77",
    "#4DC19C",
    "#776E57",
]

DEFAULT_CATEGORY = "default"


class ColourAssigner:
    """Hands out palette colours per category, first come first served.

    The same category always gets the same colour from one assigner; build a
    new assigner per rendered view so views don't influence each other.
    """

    def __init__(self, palette: Optional[List[str]] = None):
        self.palette = palette or PALETTE
        self._assigned: Dict[str, str] = {}

    def colour_for(self, category: Optional[str]) -> str:
        key = category or DEFAULT_CATEGORY
        if key not in self._assigned:
            self._assigned[key] = self.palette[len(self._assigned) % len(self.palette)]
        return self._assigned[key]
