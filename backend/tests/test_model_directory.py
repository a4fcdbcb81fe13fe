import httpx
import pytest

from signal_advisor.core.exceptions import ConfigurationError, NoUsableModel, UpstreamUnavailable
from signal_advisor.services.ai_providers.base import ModelDescriptor
from signal_advisor.services.ai_providers.gemini import GeminiInvoker, rank_models, score_model


def _descriptors(*ids, methods=("generateContent",)):
    return [ModelDescriptor(id=model_id, supported_methods=list(methods)) for model_id in ids]


def _directory(backend):
    return GeminiInvoker(api_key="test-key", client_factory=backend.client_factory).directory


def test_ranking_order():
    """latest 标记优先，其次版本号，最后 flash 加分 / preview 减分"""
    ranked = rank_models(_descriptors("gemini-2.0-flash", "gemini-2.5-pro-preview", "gemini-1.5-flash-latest"))
    assert ranked == ["gemini-1.5-flash-latest", "gemini-2.5-pro-preview", "gemini-2.0-flash"]


def test_scores():
    assert score_model("gemini-1.5-flash-latest") == 11650
    assert score_model("gemini-2.5-pro-preview") == 2520
    assert score_model("gemini-2.0-flash") == 2150
    assert score_model("gemini-exp-1206") == 0
    assert score_model("gemini-3-pro") == 3050


def test_ranking_filters_non_text_models():
    descriptors = _descriptors(
        "gemini-2.5-flash-preview-tts", "imagen-3.0-generate-002", "veo-2.0-generate-001",
        "text-embedding-004", "aqa", "gemini-2.0-flash",
    ) + [ModelDescriptor(id="gemini-2.5-flash", supported_methods=["countTokens"])]
    assert rank_models(descriptors) == ["gemini-2.0-flash"]


def test_ranking_is_stable_for_ties():
    ranked = rank_models(_descriptors("gemini-2.0-flash-001", "gemini-2.0-flash", "gemini-2.0-flash-002"))
    assert ranked == ["gemini-2.0-flash-001", "gemini-2.0-flash", "gemini-2.0-flash-002"]


@pytest.mark.asyncio
async def test_list_models_strips_prefix(gemini_backend):
    gemini_backend.add_model("gemini-2.0-flash", display_name="Gemini 2.0 Flash")
    models = await _directory(gemini_backend).list_models()

    assert gemini_backend.list_calls == ["v1beta"]
    assert models == [ModelDescriptor(
        id="gemini-2.0-flash",
        display_name="Gemini 2.0 Flash",
        supported_methods=["generateContent", "countTokens"],
    )]


@pytest.mark.asyncio
async def test_list_models_falls_back_to_second_revision(gemini_backend, make_api_error):
    gemini_backend.add_model("gemini-2.0-flash")
    gemini_backend.list_outcomes["v1beta"] = make_api_error(500, "internal", "INTERNAL")

    models = await _directory(gemini_backend).list_models()
    assert gemini_backend.list_calls == ["v1beta", "v1"]
    assert [m.id for m in models] == ["gemini-2.0-flash"]


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [400, 403])
async def test_rejected_key_stops_immediately(gemini_backend, make_api_error, code):
    gemini_backend.list_outcomes["v1beta"] = make_api_error(code, "API key not valid", "INVALID_ARGUMENT")

    with pytest.raises(ConfigurationError):
        await _directory(gemini_backend).list_models()
    assert gemini_backend.list_calls == ["v1beta"]


@pytest.mark.asyncio
async def test_unreachable_api(gemini_backend):
    gemini_backend.list_outcomes["v1beta"] = httpx.ConnectError("offline")
    gemini_backend.list_outcomes["v1"] = httpx.ConnectError("offline")

    with pytest.raises(UpstreamUnavailable):
        await _directory(gemini_backend).list_models()


@pytest.mark.asyncio
async def test_no_usable_model_lists_available(gemini_backend):
    gemini_backend.add_model("text-embedding-004", actions=("embedContent",))
    gemini_backend.add_model("imagen-3.0-generate-002", actions=("predict",))

    with pytest.raises(NoUsableModel) as exc_info:
        await _directory(gemini_backend).ranked_candidates()
    assert exc_info.value.available == ["text-embedding-004", "imagen-3.0-generate-002"]
    assert "text-embedding-004" in str(exc_info.value)


@pytest.mark.asyncio
async def test_undecodable_listing_tries_second_revision(gemini_backend):
    gemini_backend.add_model("gemini-2.0-flash")
    gemini_backend.list_outcomes["v1beta"] = ValueError("Unknown API response")

    models = await _directory(gemini_backend).list_models()
    assert gemini_backend.list_calls == ["v1beta", "v1"]
    assert [m.id for m in models] == ["gemini-2.0-flash"]
