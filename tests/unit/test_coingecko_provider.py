"""Unit tests for CoinGeckoPriceClient."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from src.registry.providers.coingecko import CoinGeckoPriceClient
from src.utils.exceptions import DataProviderError


def _response(payload) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestCoinGeckoConfig:
    """Test cases for client configuration."""

    def test_defaults(self) -> None:
        """Test client with default configuration."""
        client = CoinGeckoPriceClient()

        assert client.base_url == "https://api.coingecko.com/api/v3"
        assert client.timeout == 10.0
        assert client.api_key is None
        assert client.fallback_prices is None

    def test_invalid_timeout(self) -> None:
        """Test config validation for timeout."""
        with pytest.raises(ValueError, match="timeout must be > 0"):
            CoinGeckoPriceClient(timeout=0)

    def test_from_config(self) -> None:
        """Test client built from the price_feed section."""
        client = CoinGeckoPriceClient.from_config(
            {
                "base_url": "https://proxy.example/api/",
                "timeout": 3,
                "fallback_prices": {"bitcoin": 50000},
            },
            api_key="key",
        )

        assert client.base_url == "https://proxy.example/api"
        assert client.timeout == 3
        assert client.api_key == "key"
        assert client.fallback_prices == {"bitcoin": 50000}


class TestCoinGeckoPrices:
    """Test cases for get_prices."""

    @pytest.fixture
    def client(self) -> CoinGeckoPriceClient:
        """Create CoinGeckoPriceClient instance."""
        return CoinGeckoPriceClient()

    def test_get_prices_success(self, client: CoinGeckoPriceClient) -> None:
        """Test successful price fetch."""
        with patch("requests.get") as mock_get:
            mock_get.return_value = _response(
                {"bitcoin": {"usd": 63000}, "aleo": {"usd": 0.19}}
            )

            prices = client.get_prices(["bitcoin", "aleo"])

        assert prices == {"bitcoin": {"usd": 63000.0}, "aleo": {"usd": 0.19}}
        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.coingecko.com/api/v3/simple/price"
        assert kwargs["params"] == {"ids": "bitcoin,aleo", "vs_currencies": "usd"}
        assert kwargs["timeout"] == 10.0
        assert "x-cg-demo-api-key" not in kwargs["headers"]

    def test_api_key_header(self) -> None:
        """Test the API key is sent as a header."""
        client = CoinGeckoPriceClient(api_key="demo-key")

        with patch("requests.get") as mock_get:
            mock_get.return_value = _response({})
            client.get_prices(["bitcoin"])

        assert mock_get.call_args.kwargs["headers"]["x-cg-demo-api-key"] == "demo-key"

    def test_unknown_coins_absent(self, client: CoinGeckoPriceClient) -> None:
        """Test coins without a USD price are left out."""
        with patch("requests.get") as mock_get:
            mock_get.return_value = _response({"bitcoin": {"usd": 63000}, "mystery": {}})

            prices = client.get_prices(["bitcoin", "mystery", "aleo"])

        assert prices == {"bitcoin": {"usd": 63000.0}}

    def test_malformed_prices_skipped(self, client: CoinGeckoPriceClient) -> None:
        """Test unparseable price values are left out instead of raising."""
        with patch("requests.get") as mock_get:
            mock_get.return_value = _response(
                {"bitcoin": {"usd": "n/a"}, "aleo": {"usd": [1]}, "ethereum": {"usd": "3400"}}
            )

            prices = client.get_prices(["bitcoin", "aleo", "ethereum"])

        assert prices == {"ethereum": {"usd": 3400.0}}

    def test_empty_request(self, client: CoinGeckoPriceClient) -> None:
        """Test no request is made for an empty id list."""
        with patch("requests.get") as mock_get:
            assert client.get_prices([]) == {}

        mock_get.assert_not_called()

    def test_request_error(self, client: CoinGeckoPriceClient) -> None:
        """Test network errors raise DataProviderError."""
        with patch("requests.get") as mock_get:
            mock_get.side_effect = requests.ConnectionError("offline")

            with pytest.raises(DataProviderError, match="Failed to fetch prices"):
                client.get_prices(["bitcoin"])

    def test_http_error(self, client: CoinGeckoPriceClient) -> None:
        """Test HTTP errors raise DataProviderError."""
        response = _response({})
        response.raise_for_status.side_effect = requests.HTTPError("429 Too Many Requests")

        with patch("requests.get", return_value=response):
            with pytest.raises(DataProviderError, match="429"):
                client.get_prices(["bitcoin"])

    def test_invalid_json(self, client: CoinGeckoPriceClient) -> None:
        """Test an unparseable body raises DataProviderError."""
        response = _response(None)
        response.json.side_effect = ValueError("not json")

        with patch("requests.get", return_value=response):
            with pytest.raises(DataProviderError):
                client.get_prices(["bitcoin"])

    def test_unexpected_payload(self, client: CoinGeckoPriceClient) -> None:
        """Test a non-object payload raises DataProviderError."""
        with patch("requests.get", return_value=_response(["bitcoin"])):
            with pytest.raises(DataProviderError, match="Unexpected CoinGecko response type"):
                client.get_prices(["bitcoin"])

    def test_fallback_prices(self) -> None:
        """Test fallback prices are served for requested coins on failure."""
        client = CoinGeckoPriceClient(fallback_prices={"bitcoin": 50000, "ethereum": 3000})

        with patch("requests.get", side_effect=requests.Timeout("slow")):
            prices = client.get_prices(["bitcoin", "aleo"])

        assert prices == {"bitcoin": {"usd": 50000.0}}
