import pytest

from mcforecast.utils import format_data_size, format_processing_time, format_uptime


@pytest.mark.parametrize(
    ("ms", "expected"),
    [(0, "0 ms"), (999, "999 ms"), (1000, "1.00 sec"), (59_999, "60.00 sec"), (60_000, "1.00 min")],
)
def test_format_processing_time(ms, expected):
    assert format_processing_time(ms) == expected


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "00:00:00:00"), (59.9, "00:00:00:59"), (3600, "00:01:00:00"), (90061, "01:01:01:01"), (-3, "00:00:00:00")],
)
def test_format_uptime(seconds, expected):
    assert format_uptime(seconds) == expected


@pytest.mark.parametrize(
    ("n_bytes", "expected"),
    [(0, "0 Bytes"), (512, "512.00 Bytes"), (1024, "1.00 KB"), (1536, "1.50 KB"), (5 * 1024**2, "5.00 MB")],
)
def test_format_data_size(n_bytes, expected):
    assert format_data_size(n_bytes) == expected
