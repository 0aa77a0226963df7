import json
import random
from urllib.parse import unquote

import pytest

from axenbot.charts import (
    MAX_FLUCTUATION,
    render_chart_image,
    render_chart_url,
    synthesize,
)


@pytest.mark.parametrize("count", [1, 2, 10, 48])
def test_synthesize_length_and_start(count):
    labels, values = synthesize(4.2371, count)
    assert len(labels) == count
    assert len(values) == count
    assert values[0] == round(4.2371, 2)


def test_synthesize_labels_are_hour_markers():
    labels, _ = synthesize(10.0, 4)
    assert labels == ["0:00", "1:00", "2:00", "3:00"]


def test_synthesize_fluctuation_bound():
    _, values = synthesize(5000.0, 200, rng=random.Random(7))
    for prev, cur in zip(values, values[1:]):
        # half a cent of rounding slack on top of the 0.5% step
        assert abs(cur - prev) <= prev * MAX_FLUCTUATION + 0.005 + 1e-9


def test_synthesize_steps_from_previous_value():
    class Fixed:
        def uniform(self, a, b):
            return b

    _, values = synthesize(100.0, 3, rng=Fixed())
    assert values == [100.0, 100.5, round(100.5 * 1.005, 2)]


def test_synthesize_reproducible_with_seed():
    first = synthesize(7.5, 10, rng=random.Random(42))
    second = synthesize(7.5, 10, rng=random.Random(42))
    assert first == second


def test_synthesize_rejects_empty_series():
    with pytest.raises(ValueError):
        synthesize(1.0, 0)


def test_render_chart_url_embeds_series():
    labels = ["0:00", "1:00", "2:00"]
    values = [4.2, 4.21, 4.19]
    url = render_chart_url(labels, values, base_url="https://charts.example/chart")
    assert url.startswith("https://charts.example/chart?c=")
    encoded = url.split("?c=", 1)[1]
    assert " " not in encoded and "{" not in encoded
    spec = json.loads(unquote(encoded))
    assert spec["type"] == "line"
    assert spec["data"]["labels"] == labels
    dataset = spec["data"]["datasets"][0]
    assert dataset["data"] == values
    assert dataset["fill"] is False
    assert dataset["tension"] == 0.3


def test_render_chart_url_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        render_chart_url(["0:00", "1:00"], [1.0])


def test_render_chart_image_png():
    buf = render_chart_image(["0:00", "1:00"], [1.0, 1.01])
    assert buf.read(8) == b"\x89PNG\r\n\x1a\n"
