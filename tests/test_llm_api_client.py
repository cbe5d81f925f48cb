import unittest
from unittest.mock import patch, MagicMock

import httpx
from openai import APIConnectionError

from llm_api_client import LLMApiClient
from config import TranscriptionConfig

def make_config():
    mock_config = MagicMock(spec=TranscriptionConfig)
    mock_config.LLM_API_BASE_URL = 'http://test-url.com'
    mock_config.LLM_API_KEY = 'test_key'
    mock_config.LLM_TIMEOUT = 30
    mock_config.LLM_RETRIES = 0
    mock_config.LLM_MODEL_NAME = 'test_model'
    mock_config.LLM_TEMPERATURE = 0.5
    mock_config.LLM_MAX_TOKENS = 2048
    return mock_config

def make_response(content):
    mock_response = MagicMock()
    mock_response.choices = [MagicMock(message=MagicMock(content=content))]
    return mock_response

class TestLLMApiClient(unittest.TestCase):

    @patch('llm_api_client.OpenAI')
    def test_init(self, mock_openai):
        client = LLMApiClient(make_config())
        self.assertTrue(client.is_available())
        mock_openai.assert_called_once_with(
            base_url='http://test-url.com', api_key='test_key', timeout=30, max_retries=0
        )

    @patch('llm_api_client.OpenAI')
    def test_init_without_base_url(self, mock_openai):
        config = make_config()
        config.LLM_API_BASE_URL = ''
        client = LLMApiClient(config)
        self.assertFalse(client.is_available())
        mock_openai.assert_not_called()

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_warm_up(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        client.client = MagicMock()
        client.client.models.list = MagicMock(return_value=True)
        self.assertTrue(client.warm_up())

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_warm_up_connection_error(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        client.client = MagicMock()
        request = httpx.Request("GET", "http://test-url.com/models")
        client.client.models.list.side_effect = APIConnectionError(request=request)
        self.assertFalse(client.warm_up())

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_process_text(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        client.client = MagicMock()
        client.client.chat.completions.create = MagicMock(return_value=make_response("  Test response \n"))

        result = client.process_text("Test prompt")
        self.assertEqual(result, "Test response")
        kwargs = client.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test_model")
        self.assertEqual(kwargs["max_tokens"], 2048)
        self.assertEqual(kwargs["temperature"], 0.5)
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "Test prompt"}])

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_process_text_overrides(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        client.client = MagicMock()
        client.client.chat.completions.create = MagicMock(return_value=make_response("Summary"))

        client.process_text("Summarize", model="small_model", max_tokens=150, temperature=0.7)
        kwargs = client.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "small_model")
        self.assertEqual(kwargs["max_tokens"], 150)
        self.assertEqual(kwargs["temperature"], 0.7)

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_process_text_empty_response(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        client.client = MagicMock()
        client.client.chat.completions.create = MagicMock(return_value=make_response("   "))
        self.assertIsNone(client.process_text("Test prompt"))

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_process_text_api_failure(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        client.client = MagicMock()
        request = httpx.Request("POST", "http://test-url.com/chat/completions")
        client.client.chat.completions.create.side_effect = APIConnectionError(request=request)
        self.assertIsNone(client.process_text("Test prompt"))

    @patch('llm_api_client.LLMApiClient._initialize_client')
    def test_process_text_without_client(self, mock_initialize_client):
        client = LLMApiClient(make_config())
        self.assertIsNone(client.process_text("Test prompt"))

if __name__ == '__main__':
    unittest.main()
