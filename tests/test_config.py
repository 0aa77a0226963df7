import pytest

import axenbot.config as config


@pytest.mark.parametrize(
    "value,seconds",
    [("30", 30), ("30s", 30), ("1m", 60), ("2h", 7200), ("1d", 86400)],
)
def test_parse_duration(value, seconds):
    assert config.parse_duration(value) == seconds


def test_parse_duration_invalid():
    with pytest.raises(ValueError):
        config.parse_duration("soon")


def test_format_interval():
    assert config.format_interval(30) == "30s"
    assert config.format_interval(120) == "2m"
    assert config.format_interval(7200) == "2h"


def test_default_catalog():
    assert len(config.STRATEGIES) == 6
    assert all("Strategy Alert" in text for text in config.STRATEGIES)
