from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from farebot.aviasales_fetcher import (
    DEFAULT_PRICE_URL,
    AviasalesFetcher,
    DateParseError,
    DecodeError,
    NetworkError,
    RequestBuildError,
    UpstreamLogicError,
    UpstreamStatusError,
    parse_departure,
)
from farebot.models import DateFilter, FareConstraints


def record(**overrides):
    item = {
        "origin": "OVB",
        "destination": "DPS",
        "departure_at": "2024-03-10T08:00:00+07:00",
        "price": 28000,
        "airline": "S7",
        "link": "/search/OVB1003DPS1",
        "duration": 600,
        "transfers": 1,
    }
    item.update(overrides)
    return item


def make_response(payload, status_code=200):
    resp = Mock(status_code=status_code, text="")
    resp.json.return_value = payload
    return resp


CONSTRAINTS = FareConstraints(max_price=35000, max_duration=1440)


@patch("requests.get")
def test_request_parameters(mock_get):
    mock_get.return_value = make_response({"success": True, "data": []})

    fetcher = AviasalesFetcher("secret")
    fetcher.search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)

    args, kwargs = mock_get.call_args
    assert args[0] == DEFAULT_PRICE_URL
    assert kwargs["params"] == {
        "origin": "OVB",
        "destination": "DPS",
        "currency": "rub",
        "departure_at": "2024-03",
        "sorting": "price",
        "direct": "false",
        "limit": 15,
        "one_way": "true",
        "token": "secret",
    }
    assert kwargs["timeout"] == 30
    assert kwargs["headers"]["Accept"] == "application/json"
    assert kwargs["headers"]["User-Agent"].startswith("Mozilla/5.0")


@patch("requests.get")
def test_fare_mapping(mock_get):
    mock_get.return_value = make_response({"success": True, "data": [record()]})

    fares = AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)

    assert len(fares) == 1
    fare = fares[0]
    assert fare.origin == "OVB"
    assert fare.destination == "DPS"
    assert fare.price == 28000
    assert fare.duration == 600
    assert fare.transfers == 1
    assert fare.airline == "S7"
    assert fare.link == "https://aviasales.ru/search/OVB1003DPS1"
    assert fare.departure_at == datetime(
        2024, 3, 10, 8, 0, tzinfo=timezone(timedelta(hours=7))
    )


@patch("requests.get")
def test_skip_filtered_and_broken_records(mock_get):
    payload = {
        "success": True,
        "data": [
            record(),
            record(price=35001),
            record(duration=1441),
            record(departure_at="bad-date"),
            record(departure_at=None),
            record(price="abc"),
            {"destination": "DPS"},
        ],
    }
    mock_get.return_value = make_response(payload)

    fares = AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)

    assert [f.price for f in fares] == [28000]


@patch("requests.get")
def test_ceilings_are_inclusive(mock_get):
    mock_get.return_value = make_response(
        {"success": True, "data": [record(price=35000, duration=1440)]}
    )

    fares = AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)

    assert len(fares) == 1


@patch("requests.get")
def test_date_filter_drops_records(mock_get):
    payload = {
        "success": True,
        "data": [
            record(departure_at="2024-03-10T08:00:00Z"),
            record(departure_at="2024-03-20T08:00:00Z", price=20000),
        ],
    }
    mock_get.return_value = make_response(payload)
    constraints = FareConstraints(
        max_price=35000, date_filter=DateFilter(start=date(2024, 3, 15))
    )

    fares = AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", constraints)

    assert [f.price for f in fares] == [20000]


@patch("requests.get")
def test_custom_link_base(mock_get):
    mock_get.return_value = make_response({"success": True, "data": [record()]})

    fetcher = AviasalesFetcher("x", link_base_url="https://www.aviasales.com/")
    fares = fetcher.search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)

    assert fares[0].link == "https://www.aviasales.com/search/OVB1003DPS1"


@patch("requests.get")
def test_http_error(mock_get):
    mock_get.return_value = Mock(status_code=502, text="Bad gateway")

    with pytest.raises(UpstreamStatusError) as err:
        AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)
    assert err.value.status_code == 502


@patch("requests.get")
def test_invalid_json(mock_get):
    resp = Mock(status_code=200)
    resp.json.side_effect = ValueError("Expecting value")
    mock_get.return_value = resp

    with pytest.raises(DecodeError):
        AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)


@patch("requests.get")
def test_payload_not_an_object(mock_get):
    mock_get.return_value = make_response(["unexpected"])

    with pytest.raises(DecodeError):
        AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)


@patch("requests.get")
def test_api_failure_flag(mock_get):
    mock_get.return_value = make_response(
        {"success": False, "error": "Unauthorized", "data": []}
    )

    with pytest.raises(UpstreamLogicError, match="Unauthorized"):
        AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)


@pytest.mark.parametrize(
    "exc", [requests.ConnectionError("refused"), requests.Timeout("slow")]
)
@patch("requests.get")
def test_network_errors(mock_get, exc):
    mock_get.side_effect = exc

    with pytest.raises(NetworkError):
        AviasalesFetcher("x").search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)


@patch("requests.get")
def test_bad_url_is_a_build_error(mock_get):
    mock_get.side_effect = requests.exceptions.MissingSchema("No scheme supplied")

    fetcher = AviasalesFetcher("x", price_url="api.travelpayouts.com/v3")
    with pytest.raises(RequestBuildError):
        fetcher.search_prices("OVB", "DPS", "2024-03", CONSTRAINTS)


def test_parse_departure():
    assert parse_departure("2024-03-10T08:00:00Z") == datetime(
        2024, 3, 10, 8, 0, tzinfo=timezone.utc
    )
    parsed = parse_departure("2024-03-10T08:00:00+07:00")
    assert parsed.utcoffset() == timedelta(hours=7)
    assert parsed.hour == 8

    for raw in ("", None, "10.03.2024", "2024-03-10T08:00:00"):
        with pytest.raises(DateParseError):
            parse_departure(raw)
