# stt_api_client.py
import os
import logging
from typing import Optional
from openai import OpenAI, APIConnectionError, AuthenticationError, RateLimitError, BadRequestError, APITimeoutError, APIError

from config import TranscriptionConfig

class SpeechApiClient:
    """Transcribes audio segment files through the OpenAI audio transcription endpoint."""

    def __init__(self, config: TranscriptionConfig):
        self.client: Optional[OpenAI] = None
        self.config = config
        self._initialize_client()

    def _initialize_client(self):
        if self.client:
            return
        try:
            if not self.config.STT_API_BASE_URL:
                logging.error("STT_API_BASE_URL is not configured. Cannot initialize speech client.")
                return
            self.client = OpenAI(
                base_url=self.config.STT_API_BASE_URL,
                api_key=self.config.STT_API_KEY if self.config.STT_API_KEY else "nokey",
                timeout=self.config.LLM_TIMEOUT,
                max_retries=self.config.LLM_RETRIES,
            )
            logging.info(f"Speech client initialized for model '{self.config.STT_MODEL_NAME}' at {self.config.STT_API_BASE_URL}")
        except Exception as e:
            logging.error(f"Failed to initialize speech client. Error: {str(e)}", exc_info=True)
            self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def transcribe(self, audio_path: str, language: Optional[str] = None, prompt: Optional[str] = None) -> Optional[str]:
        """
        Transcribe one audio segment.

        Args:
            audio_path (str): Path to the segment file.
            language (Optional[str]): ISO-639-1 language hint (e.g. "sv").
            prompt (Optional[str]): Domain prompt (names, vocabulary, filler-word guidance).

        Returns:
            Optional[str]: The recognised text, "" when the service heard nothing,
                           or None when the call failed.
        """
        if not self.is_available():
            logging.error("Speech client not available. Cannot transcribe segment.")
            return None

        api_args = {"model": self.config.STT_MODEL_NAME}
        if language:
            api_args["language"] = language
        if prompt:
            api_args["prompt"] = prompt

        segment_name = os.path.basename(audio_path)
        try:
            with open(audio_path, "rb") as audio_file:
                transcription = self.client.audio.transcriptions.create(file=audio_file, **api_args)
        except (AuthenticationError, APIConnectionError, RateLimitError, BadRequestError, APITimeoutError) as e:
            logging.error(f"Transcription of {segment_name} failed ({type(e).__name__}): {e}")
            return None
        except APIError as e:
            logging.error(f"Transcription of {segment_name} failed: API Error: {e}")
            return None
        except OSError as e:
            logging.error(f"Could not read segment {audio_path}: {e}")
            return None
        except Exception as e:
            logging.error(f"Unexpected error transcribing {segment_name}: {e}", exc_info=True)
            return None

        text = getattr(transcription, "text", None)
        if text is None:
            logging.warning(f"Transcription response for {segment_name} carried no text field.")
            return ""
        return text.strip()
