import os
from unittest.mock import patch, MagicMock

import pytest

from orgmirror.core.exceptions import ProviderError
from orgmirror.llms.gemini import Gemini


@pytest.fixture
def mocked_gemini_client():
    """A Gemini instance and the mock behind ``client.models.generate_content``."""
    with patch("orgmirror.llms.gemini.genai") as mock_genai, patch.dict(
        os.environ, {"GEMINI_API_KEY": "test_key"}
    ):
        mock_client_instance = MagicMock()
        mock_genai.Client.return_value = mock_client_instance
        yield Gemini(), mock_client_instance.models.generate_content, mock_genai


def test_init_raises_value_error_if_api_key_not_set():
    with patch.dict(os.environ, {"GEMINI_API_KEY": ""}):
        with pytest.raises(ValueError, match="GEMINI_API_KEY environment variable not set"):
            Gemini()


def test_complete_returns_response_text(mocked_gemini_client):
    gemini, mock_generate_content, mock_genai = mocked_gemini_client
    mock_generate_content.return_value = MagicMock(text='{"summary": "ok"}')

    assert gemini.complete("system", "user") == '{"summary": "ok"}'
    mock_genai.types.GenerateContentConfig.assert_called_once_with(
        system_instruction="system", response_mime_type="application/json"
    )
    assert mock_generate_content.call_args.kwargs["contents"] == "user"


def test_complete_wraps_api_errors(mocked_gemini_client):
    gemini, mock_generate_content, _ = mocked_gemini_client
    mock_generate_content.side_effect = Exception("API Error")

    with pytest.raises(ProviderError, match="API Error"):
        gemini.complete("system", "user")


def test_complete_rejects_empty_text(mocked_gemini_client):
    gemini, mock_generate_content, _ = mocked_gemini_client
    mock_generate_content.return_value = MagicMock(text="")

    with pytest.raises(ProviderError):
        gemini.complete("system", "user", json_mode=False)
