import os
import logging
from typing import Optional, Union

CONTEXT_STRATEGIES = ('excerpt', 'summary')
TRANSCRIBE_BACKENDS = ('api', 'local')

class BaseConfig:
    """Central configuration shared by the transcription and refinement components"""

    def __init__(self):
        # Core LLM Configuration (refinement and summary calls)
        self.LLM_API_BASE_URL = self.get_env('LLM_API_BASE_URL', 'https://api.openai.com/v1', str)
        self.LLM_API_KEY = self.get_env('LLM_API_KEY', os.getenv('OPENAI_API_KEY'), str)
        self.LLM_MODEL_NAME = self.get_env('LLM_MODEL_NAME', 'gpt-4-turbo-preview', str)

        self.LLM_TIMEOUT = self.get_env('LLM_TIMEOUT', 120, int)
        # No automatic retries: one attempt per external call
        self.LLM_RETRIES = self.get_env('LLM_RETRIES', 0, int)
        self.LLM_TEMPERATURE = self.get_env('LLM_TEMPERATURE', 0.5, float)
        self.LLM_MAX_TOKENS = self.get_env('LLM_MAX_TOKENS', 2048, int)

        self.DEBUG = self.get_env('DEBUG', False, bool)

        self._validate()

    def _validate(self):
        if self.LLM_TIMEOUT <= 0:
            raise ValueError("LLM_TIMEOUT must be a positive number of seconds")
        if self.LLM_RETRIES < 0:
            raise ValueError("LLM_RETRIES must be non-negative")
        if self.LLM_MAX_TOKENS < 1:
            raise ValueError("LLM_MAX_TOKENS must be at least 1")

    @staticmethod
    def get_env(name: str, default: Optional[Union[str, int, float, bool]], var_type: type):
        """Centralized environment variable handling"""
        raw_value = os.getenv(name)
        if raw_value is None:
            return default

        if var_type == bool:
            val = raw_value.strip().lower()
            if val in ('true', '1', 't', 'y', 'yes'):
                return True
            elif val in ('false', '0', 'f', 'n', 'no'):
                return False
            logging.warning(f"Invalid boolean for {name}, using default: {default}")
            return default

        try:
            return var_type(raw_value.strip())
        except ValueError:
            logging.error(f"Invalid {name} value, using default: {default}")
            return default

class TranscriptionConfig(BaseConfig):
    """Speech-to-text, batching and context-carrying configuration"""

    def __init__(self):
        # Transcriber backend: 'api' (OpenAI audio transcription) or 'local' (transformers Whisper)
        self.TRANSCRIBE_BACKEND = self.get_env('TRANSCRIBE_BACKEND', 'api', str).lower()
        self.STT_API_BASE_URL = self.get_env('STT_API_BASE_URL', 'https://api.openai.com/v1', str)
        self.STT_API_KEY = self.get_env('STT_API_KEY', os.getenv('OPENAI_API_KEY'), str)
        self.STT_MODEL_NAME = self.get_env('STT_MODEL_NAME', 'whisper-1', str)
        self.LOCAL_MODEL_NAME = self.get_env('LOCAL_MODEL_NAME', 'openai/whisper-medium', str)

        device_setting = self.get_env('DEVICE', 'auto', str).lower()
        if device_setting not in ('auto', 'gpu', 'cpu'):
            logging.warning(f"Invalid DEVICE setting '{device_setting}'. Using 'auto'")
            device_setting = 'auto'
        self.DEVICE_SETTING = device_setting

        self.TRANSCRIBE_LANGUAGE = self.get_env('TRANSCRIBE_LANGUAGE', None, str)
        self.TRANSCRIBE_PROMPT = self.get_env('TRANSCRIBE_PROMPT', None, str)

        # Batching and context carry-over
        self.BATCH_SIZE = self.get_env('BATCH_SIZE', 3, int)
        self.CONTEXT_STRATEGY = self.get_env('CONTEXT_STRATEGY', 'excerpt', str).lower()
        self.CONTEXT_SENTENCES = self.get_env('CONTEXT_SENTENCES', 1, int)
        self.SUMMARY_MODEL_NAME = self.get_env('SUMMARY_MODEL_NAME', None, str)
        self.SUMMARY_MAX_TOKENS = self.get_env('SUMMARY_MAX_TOKENS', 150, int)
        self.SUMMARY_TEMPERATURE = self.get_env('SUMMARY_TEMPERATURE', 0.7, float)
        self.REFINE_PROMPT_FILE = self.get_env('REFINE_PROMPT_FILE', None, str)

        # Dry runs: stop after this many segments (unset = process everything)
        self.MAX_SEGMENTS = self.get_env('MAX_SEGMENTS', None, int)

        super().__init__()

    def _validate(self):
        super()._validate()
        if self.TRANSCRIBE_BACKEND not in TRANSCRIBE_BACKENDS:
            raise ValueError(f"TRANSCRIBE_BACKEND must be one of {', '.join(TRANSCRIBE_BACKENDS)}")
        if self.BATCH_SIZE < 1:
            raise ValueError("BATCH_SIZE must be at least 1")
        if self.CONTEXT_STRATEGY not in CONTEXT_STRATEGIES:
            raise ValueError(f"CONTEXT_STRATEGY must be one of {', '.join(CONTEXT_STRATEGIES)}")
        if self.CONTEXT_SENTENCES < 1:
            raise ValueError("CONTEXT_SENTENCES must be at least 1")
        if self.SUMMARY_MAX_TOKENS < 1:
            raise ValueError("SUMMARY_MAX_TOKENS must be at least 1")
        if self.MAX_SEGMENTS is not None and self.MAX_SEGMENTS < 1:
            raise ValueError("MAX_SEGMENTS must be at least 1 when set")

class AudioConfig(BaseConfig):
    """Configuration for audio normalization and segmentation"""

    def __init__(self):
        self.SEGMENT_DURATION_S = self.get_env('SEGMENT_DURATION_S', 25.0, float)
        self.TARGET_SAMPLE_RATE = self.get_env('TARGET_SAMPLE_RATE', 16000, int)
        self.NORMALIZE_AUDIO = self.get_env('NORMALIZE_AUDIO', True, bool)
        self.TARGET_LUFS = self.get_env('TARGET_LUFS', -23.0, float)
        self.PEAK_CEILING_DB = self.get_env('PEAK_CEILING_DB', -2.0, float)
        self.SEGMENTS_DIR = self.get_env('SEGMENTS_DIR', 'output_segments', str)
        self.KEEP_SEGMENTS = self.get_env('KEEP_SEGMENTS', False, bool)
        super().__init__()

    def _validate(self):
        super()._validate()
        if self.SEGMENT_DURATION_S <= 0:
            raise ValueError("SEGMENT_DURATION_S must be positive")
        if self.TARGET_SAMPLE_RATE < 8000:
            raise ValueError("TARGET_SAMPLE_RATE must be at least 8000 Hz")
        if self.PEAK_CEILING_DB > 0:
            raise ValueError("PEAK_CEILING_DB must not exceed 0 dBFS")
