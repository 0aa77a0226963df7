"""Synthetic price series and chart rendering."""

import json
import random
from io import BytesIO
from typing import Optional, Sequence
from urllib.parse import quote

import matplotlib

matplotlib.use("Agg")

from matplotlib import pyplot as plt  # noqa: E402

from . import config  # noqa: E402

MAX_FLUCTUATION = 0.005
LINE_COLOR = "rgb(75, 192, 192)"
# characters encodeURIComponent leaves untouched
_URI_SAFE = "-_.!~*'()"


def synthesize(
    base_price: float, count: int, rng: Optional[random.Random] = None
) -> tuple[list[str], list[float]]:
    """Return ``(labels, values)`` for a random walk starting at ``base_price``.

    Each value moves at most ±0.5% from the previous one, so drift compounds
    over the series. Labels are hour markers ``"0:00"``, ``"1:00"``, ...
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    rng = rng or random
    values = [round(base_price, 2)]
    for _ in range(1, count):
        fluctuation = rng.uniform(-MAX_FLUCTUATION, MAX_FLUCTUATION)
        values.append(round(values[-1] * (1 + fluctuation), 2))
    labels = [f"{i}:00" for i in range(count)]
    return labels, values


def chart_spec(labels: Sequence[str], values: Sequence[float], title: str) -> dict:
    """Return a Chart.js line chart description for the series."""
    return {
        "type": "line",
        "data": {
            "labels": list(labels),
            "datasets": [
                {
                    "label": title,
                    "data": list(values),
                    "fill": False,
                    "borderColor": LINE_COLOR,
                    "tension": 0.3,
                }
            ],
        },
        "options": {
            "scales": {
                "x": {"ticks": {"color": "white"}},
                "y": {"ticks": {"color": "white"}},
            },
            "plugins": {"legend": {"labels": {"color": "white"}}},
        },
    }


def render_chart_url(
    labels: Sequence[str],
    values: Sequence[float],
    *,
    title: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    """Return an image URL embedding the chart description in its query."""
    if len(labels) != len(values):
        raise ValueError(
            f"labels and values differ in length ({len(labels)} != {len(values)})"
        )
    title = title or f"{config.PRICE_SYMBOL} Simulated Trend"
    spec = chart_spec(labels, values, title)
    encoded = quote(json.dumps(spec, separators=(",", ":")), safe=_URI_SAFE)
    return f"{base_url or config.CHART_BASE_URL}?c={encoded}"


def render_chart_image(
    labels: Sequence[str], values: Sequence[float], *, title: Optional[str] = None
) -> BytesIO:
    """Render the series to a PNG buffer without calling a chart service."""
    if len(labels) != len(values):
        raise ValueError(
            f"labels and values differ in length ({len(labels)} != {len(values)})"
        )
    plt.figure(figsize=(6, 3))
    plt.plot(list(labels), list(values), color=(75 / 255, 192 / 255, 192 / 255))
    plt.title(title or f"{config.PRICE_SYMBOL} Simulated Trend")
    plt.xlabel("Time")
    plt.tight_layout()
    buf = BytesIO()
    plt.savefig(buf, format="png")
    plt.close()
    buf.seek(0)
    return buf
