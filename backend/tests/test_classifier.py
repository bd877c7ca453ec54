from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest


@pytest.fixture()
def classifier(sorter_env):
    return sorter_env["classifier"]


def _config(sorter_env, api_key="sk-or-v1-test", preference=None, selected_model=None):
    return sorter_env["runtime_settings"].ClassifierConfig(
        api_key=api_key,
        provider_preference=preference,
        selected_model=selected_model,
    )


class _ScriptedCompletion:
    """Replays a list of answers or exceptions and records the models used."""

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, profile, api_key, prompt, *, max_tokens, temperature):
        self.calls.append({"provider": profile.key, "model": profile.model, "api_key": api_key, "prompt": prompt})
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_parse_truncates_deep_paths(classifier):
    result = classifier.parse_classification('{"folderPath": ["A", "B", "C", "D", "E"], "tags": ["X"]}')

    assert result.folder_path == ["A", "B", "C"]
    assert result.tags == ["x"]


def test_parse_defaults_missing_tags(classifier):
    result = classifier.parse_classification('{"folderPath": ["📰 News"]}')

    assert result.as_dict() == {"folderPath": ["📰 News"], "tags": []}


def test_parse_accepts_code_fences(classifier):
    content = '```json\n{"folderPath": ["💰 Finance"], "tags": ["investing", "investing", "markets"]}\n```'

    result = classifier.parse_classification(content)

    assert result.folder_path == ["💰 Finance"]
    assert result.tags == ["investing", "markets"]


def test_parse_extracts_object_from_chatter(classifier):
    result = classifier.parse_classification('Sure! {"folderPath": ["Coding"], "tags": []} Hope that helps.')

    assert result.folder_path == ["Coding"]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("", "No response content"),
        ("I think this is about news.", "expected a JSON object"),
        ('{"tags": ["news"]}', "missing folderPath"),
        ('{"folderPath": "News"}', "missing folderPath"),
    ],
)
def test_parse_rejects_malformed_answers(sorter_env, classifier, content, message):
    errors = sorter_env["errors"]

    with pytest.raises(errors.ResponseFormatError, match=message):
        classifier.parse_classification(content)


def test_prompt_lists_existing_folders(classifier):
    prompt = classifier.build_classification_prompt(
        "https://example.org/html",
        "HTML guide",
        ["🧑‍💻 Coding", "🧑‍💻 Coding > 📘 Guides"],
    )

    assert "### Existing Folders (CRITICAL)" in prompt
    assert "- 🧑‍💻 Coding > 📘 Guides" in prompt
    assert "URL: https://example.org/html" in prompt
    assert "Title: HTML guide" in prompt
    assert "1-3 levels maximum" in prompt
    assert '"folderPath"' in prompt


def test_prompt_without_existing_folders(classifier):
    prompt = classifier.build_classification_prompt("https://example.org", "")

    assert "(none yet)" in prompt
    assert "(CRITICAL)" not in prompt
    assert "Title: -" in prompt


def test_missing_api_key_is_a_precondition_error(sorter_env, classifier, monkeypatch):
    errors = sorter_env["errors"]
    completion = _ScriptedCompletion()
    monkeypatch.setattr(classifier, "complete", completion)

    with pytest.raises(errors.PreconditionError, match="API key not configured"):
        asyncio.run(classifier.classify_url("https://example.org", "Example", config=_config(sorter_env, api_key="  ")))
    assert completion.calls == []


def test_classify_uses_detected_provider(sorter_env, classifier, monkeypatch):
    completion = _ScriptedCompletion('{"folderPath": ["📰 News"], "tags": ["news"]}')
    monkeypatch.setattr(classifier, "complete", completion)

    result = asyncio.run(
        classifier.classify_url(
            "https://news.example.org",
            "World news",
            ["📰 News"],
            config=_config(sorter_env, api_key="gsk_groqkey"),
        )
    )

    assert result.folder_path == ["📰 News"]
    assert completion.calls[0]["provider"] == "groq"
    assert completion.calls[0]["api_key"] == "gsk_groqkey"
    assert "- 📰 News" in completion.calls[0]["prompt"]


def test_classify_reads_persisted_configuration(sorter_env, classifier, monkeypatch):
    database = sorter_env["database"]
    database.set_api_key("sk-or-v1-stored")
    database.set_selected_openrouter_model("anthropic/claude-3-haiku")
    completion = _ScriptedCompletion('{"folderPath": ["Coding"]}')
    monkeypatch.setattr(classifier, "complete", completion)

    asyncio.run(classifier.classify_url("https://example.org", "Example"))

    assert completion.calls[0]["provider"] == "openrouter"
    assert completion.calls[0]["model"] == "anthropic/claude-3-haiku"


def test_copilot_key_is_exchanged_before_request(sorter_env, classifier, monkeypatch):
    completion = _ScriptedCompletion('{"folderPath": ["Coding"]}')
    exchanged = []

    async def fake_exchange(api_key):
        exchanged.append(api_key)
        return "session-token"

    monkeypatch.setattr(classifier, "complete", completion)
    monkeypatch.setattr(classifier, "exchange_copilot_token", fake_exchange)

    asyncio.run(classifier.classify_url("https://example.org", "Example", config=_config(sorter_env, api_key="gho_abc")))

    assert exchanged == ["gho_abc"]
    assert completion.calls[0]["api_key"] == "session-token"
    assert completion.calls[0]["provider"] == "copilot"


def test_missing_model_retries_once_with_fallback(sorter_env, classifier, monkeypatch):
    errors = sorter_env["errors"]
    database = sorter_env["database"]
    completion = _ScriptedCompletion(
        errors.ModelNotFoundError(404, "API Error (404): No endpoints found"),
        '{"folderPath": ["📰 News"], "tags": ["news"]}',
    )
    discovered = []

    async def fake_choose(api_key, *, exclude=()):
        discovered.append((api_key, list(exclude)))
        return "google/gemini-2.0-flash-001"

    monkeypatch.setattr(classifier, "complete", completion)
    monkeypatch.setattr(classifier, "choose_default_openrouter_model", fake_choose)

    result = asyncio.run(
        classifier.classify_url(
            "https://news.example.org",
            "News",
            config=_config(sorter_env, selected_model="retired/model"),
        )
    )

    assert result.folder_path == ["📰 News"]
    assert [call["model"] for call in completion.calls] == ["retired/model", "google/gemini-2.0-flash-001"]
    assert discovered == [("sk-or-v1-test", ["retired/model"])]
    assert database.get_selected_openrouter_model() == "google/gemini-2.0-flash-001"


def test_second_missing_model_is_not_retried(sorter_env, classifier, monkeypatch):
    errors = sorter_env["errors"]
    completion = _ScriptedCompletion(
        errors.ModelNotFoundError(404, "API Error (404): gone"),
        errors.ModelNotFoundError(404, "API Error (404): also gone"),
    )
    discovered = []

    async def fake_choose(api_key, *, exclude=()):
        discovered.append(api_key)
        return "google/gemini-2.0-flash-001"

    monkeypatch.setattr(classifier, "complete", completion)
    monkeypatch.setattr(classifier, "choose_default_openrouter_model", fake_choose)

    with pytest.raises(errors.NoFallbackModelError):
        asyncio.run(classifier.classify_url("https://example.org", "Example", config=_config(sorter_env)))
    assert len(completion.calls) == 2
    assert len(discovered) == 1


def test_no_fallback_model_available(sorter_env, classifier, monkeypatch):
    errors = sorter_env["errors"]
    database = sorter_env["database"]
    database.set_api_key("sk-or-v1-stored")
    database.set_selected_openrouter_model("retired/model")
    completion = _ScriptedCompletion(errors.ModelNotFoundError(404, "API Error (404): gone"))

    async def fake_choose(api_key, *, exclude=()):
        return None

    monkeypatch.setattr(classifier, "complete", completion)
    monkeypatch.setattr(classifier, "choose_default_openrouter_model", fake_choose)

    with pytest.raises(errors.NoFallbackModelError, match="No fallback OpenRouter model available"):
        asyncio.run(classifier.classify_url("https://example.org", "Example"))
    assert [call["model"] for call in completion.calls] == ["retired/model"]
    assert database.get_selected_openrouter_model() is None


def test_missing_model_on_other_providers_is_raised(sorter_env, classifier, monkeypatch):
    errors = sorter_env["errors"]
    completion = _ScriptedCompletion(errors.ModelNotFoundError(404, "API Error (404): gone"))

    async def fake_choose(api_key, *, exclude=()):
        raise AssertionError("fallback discovery must not run")

    monkeypatch.setattr(classifier, "complete", completion)
    monkeypatch.setattr(classifier, "choose_default_openrouter_model", fake_choose)

    with pytest.raises(errors.ModelNotFoundError):
        asyncio.run(classifier.classify_url("https://example.org", "Example", config=_config(sorter_env, api_key="sk-proj-x")))
    assert len(completion.calls) == 1


@pytest.mark.parametrize("error_name", ["AuthError", "RateLimitError", "ProviderPermissionError"])
def test_other_provider_errors_propagate_without_retry(sorter_env, classifier, monkeypatch, error_name):
    errors = sorter_env["errors"]
    status = {"AuthError": 401, "RateLimitError": 429, "ProviderPermissionError": 403}[error_name]
    completion = _ScriptedCompletion(getattr(errors, error_name)(status, "nope"))
    monkeypatch.setattr(classifier, "complete", completion)

    with pytest.raises(getattr(errors, error_name)):
        asyncio.run(classifier.classify_url("https://example.org", "Example", config=_config(sorter_env)))
    assert len(completion.calls) == 1


def test_depth_setting_cannot_exceed_three_levels(classifier, monkeypatch):
    monkeypatch.setattr(classifier.S, "CLASSIFIER_MAX_DEPTH", 5)

    result = classifier.parse_classification('{"folderPath": ["A", "B", "C", "D", "E"]}')

    assert result.folder_path == ["A", "B", "C"]
    assert "1-3 levels maximum" in classifier.build_classification_prompt("https://example.org", "Example")


def test_depth_setting_can_lower_the_limit(classifier, monkeypatch):
    monkeypatch.setattr(classifier.S, "CLASSIFIER_MAX_DEPTH", 2)

    result = classifier.parse_classification('{"folderPath": ["A", "B", "C"]}')

    assert result.folder_path == ["A", "B"]
