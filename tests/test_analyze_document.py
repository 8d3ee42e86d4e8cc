"""End-to-end tests for document analysis through a provider."""

import json
from unittest.mock import Mock, patch

from conftest import completion_body, make_http_response
from docenrich.llm.providers import OpenAIProvider
from docenrich.llm.trace import PROMPT_LOG_NAME, RESPONSE_LOG_NAME

DOCUMENT_JSON = json.dumps({
    "title": "Electricity bill March",
    "correspondent": "City Power",
    "tags": ["Invoice", "Utilities"],
    "document_type": "Invoice",
    "document_date": "2026-03-31",
    "language": "en",
})


def make_provider(app_config, provider_kwargs, backend=None):
    return OpenAIProvider(
        app_config.provider_settings("openai"),
        app_config,
        backend=backend,
        **provider_kwargs,
    )


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_success(mock_post, app_config, provider_kwargs, tmp_path):
    """Test a successful analysis returns the parsed document and usage."""
    mock_post.return_value = make_http_response(
        body=completion_body(f"```json\n{DOCUMENT_JSON}\n```", 300, 50),
        headers={"x-ratelimit-remaining-requests": "499"},
    )
    backend = Mock()
    backend.get_thumbnail_image.return_value = b"png"
    provider = make_provider(app_config, provider_kwargs, backend)

    result = provider.analyze_document(
        "Amount due: 42.00",
        existing_tags=[{"id": 1, "name": "Invoice"}],
        existing_correspondents=[],
        document_id=12,
    )

    assert result.ok
    assert result.error is None
    assert result.truncated is False
    assert result.document["correspondent"] == "City Power"
    assert result.document["tags"] == ["Invoice", "Utilities"]
    assert result.metrics.prompt_tokens == 300
    assert result.metrics.total_tokens == 350
    assert "error" not in result.to_dict()

    payload = mock_post.call_args[1]["json"]
    assert payload["model"] == "gpt-4o-mini"
    assert payload["temperature"] == 0.3
    assert payload["messages"][0]["role"] == "system"
    assert payload["messages"][-1] == {"role": "user", "content": "Amount due: 42.00"}

    assert (tmp_path / "images" / "12.png").read_bytes() == b"png"
    assert "Amount due: 42.00" in (tmp_path / "logs" / PROMPT_LOG_NAME).read_text()
    assert json.loads((tmp_path / "logs" / RESPONSE_LOG_NAME).read_text())["title"] == (
        "Electricity bill March"
    )

    assert provider.rate_limit_tracker.state.remaining_requests == 499
    calls = provider.api_call_tracker.get_recent_calls()
    assert len(calls) == 1
    assert calls[0].status == 200
    assert calls[0].endpoint == "/chat/completions"


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_truncates_to_budget(mock_post, app_config, provider_kwargs):
    """Test content beyond the context window is truncated."""
    mock_post.return_value = make_http_response(body=completion_body(DOCUMENT_JSON))
    app_config.budget.context_window = 400
    app_config.budget.reserved_tokens = 50
    provider = make_provider(app_config, provider_kwargs)
    content = " ".join(f"word{i}" for i in range(1000))

    result = provider.analyze_document(content)

    assert result.ok
    assert result.truncated is True
    sent = mock_post.call_args[1]["json"]["messages"][-1]["content"]
    assert content.startswith(sent)
    assert len(sent) < len(content)


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_rate_limit_exhausted(mock_post, app_config, provider_kwargs, sleeps):
    """Test persistent 429 responses end in the empty failure result."""
    mock_post.return_value = make_http_response(status_code=429)
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_document("content", document_id=None)

    assert not result.ok
    assert "Rate limit exceeded" in result.error
    assert result.document == {"tags": [], "correspondent": None}
    assert result.metrics is None
    assert result.truncated is False
    assert mock_post.call_count == 6
    assert len(sleeps) == 5

    stats = provider.api_call_tracker.get_call_stats()
    assert stats.total_calls == 6
    assert stats.rate_limited_calls == 6


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_recovers_after_rate_limit(
    mock_post, app_config, provider_kwargs, sleeps
):
    """Test a call succeeds after transient 429 responses."""
    mock_post.side_effect = [
        make_http_response(status_code=429),
        make_http_response(status_code=429, headers={"retry-after": "2"}),
        make_http_response(body=completion_body(DOCUMENT_JSON)),
    ]
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_document("content")

    assert result.ok
    assert len(sleeps) == 2
    assert sleeps[1] == 2


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_invalid_json(mock_post, app_config, provider_kwargs, sleeps):
    """Test unparseable model output is not retried."""
    mock_post.return_value = make_http_response(
        body=completion_body("Sorry, I cannot help with that.")
    )
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_document("content")

    assert not result.ok
    assert "Invalid JSON response" in result.error
    assert mock_post.call_count == 1
    assert sleeps == []
    assert provider.api_call_tracker.get_recent_calls()[0].error_message is not None


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_missing_fields(mock_post, app_config, provider_kwargs):
    """Test output without tags or correspondent fails validation."""
    mock_post.return_value = make_http_response(body=completion_body('{"title": "x"}'))
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_document("content")

    assert "missing tags array or correspondent string" in result.error


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_empty_choices(mock_post, app_config, provider_kwargs):
    """Test a response without choices is rejected."""
    mock_post.return_value = make_http_response(body={"choices": []})
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_document("content")

    assert result.error == "Invalid API response structure"


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_not_initialized(mock_post, app_config, provider_kwargs):
    """Test missing credentials fail without a request."""
    app_config.providers["openai"].api_key = None
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_document("content")

    assert "client not initialized" in result.error
    mock_post.assert_not_called()


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_thumbnail_failure_ignored(mock_post, app_config, provider_kwargs):
    """Test thumbnail errors do not fail the analysis."""
    mock_post.return_value = make_http_response(body=completion_body(DOCUMENT_JSON))
    backend = Mock()
    backend.get_thumbnail_image.side_effect = ConnectionError("down")
    provider = make_provider(app_config, provider_kwargs, backend)

    result = provider.analyze_document("content", document_id=5)

    assert result.ok


@patch("docenrich.llm.transport.requests.post")
def test_analyze_document_custom_prompt(mock_post, app_config, provider_kwargs):
    """Test a custom prompt replaces the configured system prompt."""
    mock_post.return_value = make_http_response(body=completion_body(DOCUMENT_JSON))
    provider = make_provider(app_config, provider_kwargs)

    provider.analyze_document("content", custom_prompt="Focus on dates.")

    system = mock_post.call_args[1]["json"]["messages"][0]["content"]
    assert system.startswith("Focus on dates.\n\n")
    assert "Analyze the document." not in system


@patch("docenrich.llm.transport.requests.post")
def test_analyze_playground(mock_post, app_config, provider_kwargs):
    """Test playground returns raw text and sends the prompt as system message."""
    mock_post.return_value = make_http_response(body=completion_body("Three words here"))
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_playground("document text", "Summarize in three words")

    assert result.ok
    assert result.content == "Three words here"
    assert result.usage.total_tokens == 120
    assert result.truncated is False
    messages = mock_post.call_args[1]["json"]["messages"]
    assert messages == [
        {"role": "system", "content": "Summarize in three words"},
        {"role": "user", "content": "document text"},
    ]


@patch("docenrich.llm.transport.requests.post")
def test_analyze_playground_truncates(mock_post, app_config, provider_kwargs):
    """Test playground content is cut when prompt and content exceed the window."""
    mock_post.return_value = make_http_response(body=completion_body("ok"))
    app_config.budget.context_window = 60
    app_config.budget.reserved_tokens = 10
    provider = make_provider(app_config, provider_kwargs)
    content = " ".join(["token"] * 100)

    result = provider.analyze_playground(content, "short prompt")

    assert result.truncated is True
    sent = mock_post.call_args[1]["json"]["messages"][1]["content"]
    assert len(sent.split()) <= 48


@patch("docenrich.llm.transport.requests.post")
def test_analyze_playground_failure(mock_post, app_config, provider_kwargs):
    """Test playground failures are returned, not raised."""
    mock_post.return_value = make_http_response(status_code=500, text="internal")
    provider = make_provider(app_config, provider_kwargs)

    result = provider.analyze_playground("content", "prompt")

    assert result.content is None
    assert "HTTP 500" in result.error
