import pytest

from tradedesk.market_data.formatting import format_percentage, format_price, format_volume


@pytest.mark.parametrize(
    "price,expected",
    [(65432.1, "65432.10"), (1, "1.00"), (0.5, "0.5000"), (0.01, "0.0100"), (0.00001234, "0.00001234")],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


@pytest.mark.parametrize("pct,expected", [(5, "+5.00%"), (0, "+0.00%"), (-1.234, "-1.23%")])
def test_format_percentage(pct, expected):
    assert format_percentage(pct) == expected


@pytest.mark.parametrize(
    "volume,expected",
    [(2_500_000_000, "$2.50B"), (1_200_000, "$1.20M"), (1_500, "$1.50K"), (12.5, "$12.50")],
)
def test_format_volume(volume, expected):
    assert format_volume(volume) == expected
