import datetime as dt
from types import SimpleNamespace
from typing import Iterable, List

import pytest
from google.genai import errors

from signal_advisor.schemas.market_data import PriceBar, Quote


@pytest.fixture
def make_bars():
    """按收盘价序列生成连续日 K 线 (Build consecutive daily bars from closes)"""
    def _make(closes: Iterable[float], start: dt.date = dt.date(2024, 1, 1)) -> List[PriceBar]:
        return [
            PriceBar(
                date=start + dt.timedelta(days=i),
                open=close, high=close, low=close, close=close,
                volume=1_000_000,
            )
            for i, close in enumerate(closes)
        ]
    return _make


@pytest.fixture
def make_quote():
    def _make(symbol: str = "AAPL", price: float = 100.0, previous_close: float = 100.0) -> Quote:
        return Quote.from_prices(
            symbol=symbol,
            price=price,
            previous_close=previous_close,
            volume=1_000_000,
            latest_trading_day=dt.date(2024, 9, 6),
        )
    return _make


class _FakePager:
    def __init__(self, items):
        self._items = items

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._items:
            yield item


class _FakeModels:
    def __init__(self, backend, api_version):
        self._backend = backend
        self._api_version = api_version

    async def list(self):
        self._backend.list_calls.append(self._api_version)
        outcome = self._backend.list_outcomes.get(self._api_version, self._backend.models)
        if isinstance(outcome, Exception):
            raise outcome
        return _FakePager(outcome)

    async def generate_content(self, model, contents, config):
        self._backend.generate_calls.append((model, self._api_version))
        self._backend.last_config = config
        outcome = self._backend.outcomes.get((model, self._api_version), "")
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)


class FakeGeminiBackend:
    """
    google-genai 客户端替身：按 API 版本生成客户端，
    list / generate_content 的结果由 (model, api_version) 预先设定
    """

    def __init__(self):
        self.models = []
        self.list_outcomes = {}
        self.outcomes = {}
        self.list_calls = []
        self.generate_calls = []
        self.last_config = None

    def add_model(self, model_id, actions=("generateContent", "countTokens"), display_name=None):
        self.models.append(SimpleNamespace(
            name=f"models/{model_id}",
            display_name=display_name or model_id,
            supported_actions=list(actions),
        ))

    def client_factory(self, api_version):
        return SimpleNamespace(aio=SimpleNamespace(models=_FakeModels(self, api_version)))


@pytest.fixture
def gemini_backend():
    return FakeGeminiBackend()


def api_error(code: int, message: str = "error", status: str = "ERROR"):
    body = {"error": {"code": code, "message": message, "status": status}}
    if code >= 500:
        return errors.ServerError(code, body)
    return errors.ClientError(code, body)


@pytest.fixture
def make_api_error():
    return api_error
