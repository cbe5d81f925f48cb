# llm_api_client.py
import logging
from typing import Optional
from openai import OpenAI, APIConnectionError, AuthenticationError, RateLimitError, BadRequestError, APITimeoutError, APIError

from config import BaseConfig

class LLMApiClient:
    """Handles initialization and interaction with the chat-completion API used for refinement and summaries."""

    def __init__(self, config: BaseConfig):
        """
        Initializes the client upon instantiation using a provided config instance.

        Args:
            config (BaseConfig): Any configuration instance carrying the LLM_* settings.
        """
        self.client: Optional[OpenAI] = None
        self.config = config
        self._initialize_client()

    def _initialize_client(self):
        """Initializes the OpenAI client instance using settings from the stored config instance."""
        if self.client:
            logging.debug("LLM client already initialized.")
            return
        try:
            if not self.config.LLM_API_BASE_URL:
                logging.error("LLM_API_BASE_URL is not configured. Cannot initialize LLM client.")
                self.client = None
                return

            logging.info("Initializing LLM API Client...")
            self.client = OpenAI(
                base_url=self.config.LLM_API_BASE_URL,
                api_key=self.config.LLM_API_KEY if self.config.LLM_API_KEY else "nokey",
                timeout=self.config.LLM_TIMEOUT,
                max_retries=self.config.LLM_RETRIES,
            )
            logging.info(f"LLM Client initialized for model '{self.config.LLM_MODEL_NAME}' at {self.config.LLM_API_BASE_URL}")
        except Exception as e:
            logging.error(f"Failed to initialize OpenAI client. Error: {str(e)}", exc_info=True)
            self.client = None

    def is_available(self) -> bool:
        """Checks if the client was initialized successfully."""
        return self.client is not None

    def warm_up(self) -> bool:
        """
        Verifies LLM service connectivity and authentication.

        Returns:
            bool: True if the connection is successful, False otherwise.
        """
        if not self.is_available():
            logging.error("LLM Client not available. Skipping warm-up.")
            return False

        logging.info(f"Warming up LLM ({self.config.LLM_MODEL_NAME})...")
        try:
            self.client.models.list()
            logging.info("LLM connection check successful.")
            return True
        except AuthenticationError as e:
            logging.error(f"LLM warm-up failed: Authentication Error: {e}")
            return False
        except APIConnectionError as e:
            logging.error(f"LLM warm-up failed: Connection Error: {e}")
            return False
        except APIError as e:
            logging.error(f"LLM warm-up failed: API Error: {e}")
            return False
        except Exception as e:
            logging.error(f"LLM warm-up failed: Unexpected error: {e}", exc_info=True)
            return False

    def process_text(self, prompt: str, model: Optional[str] = None,
                     max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> Optional[str]:
        """
        Sends a single prompt to the configured LLM. One attempt, no retries beyond the client's own setting.

        Args:
            prompt (str): The complete prompt to send to the LLM.
            model (Optional[str]): Overrides LLM_MODEL_NAME for this call.
            max_tokens (Optional[int]): Overrides LLM_MAX_TOKENS for this call.
            temperature (Optional[float]): Overrides LLM_TEMPERATURE for this call.

        Returns:
            Optional[str]: The stripped completion text, or None if an error occurred
                           or the LLM returned an empty response.
        """
        if not self.is_available():
            logging.error("LLM Client not available. Cannot process prompt.")
            return None

        model_name = model or self.config.LLM_MODEL_NAME
        logging.debug(f"Sending prompt to LLM (model: {model_name}). Prompt start: {prompt[:100]}...")
        messages = [{"role": "user", "content": prompt}]

        try:
            api_args = {
                "model": model_name,
                "messages": messages,
                "max_tokens": max_tokens if max_tokens is not None else self.config.LLM_MAX_TOKENS,
            }
            effective_temperature = temperature if temperature is not None else self.config.LLM_TEMPERATURE
            if effective_temperature is not None:
                api_args["temperature"] = effective_temperature
            else:
                logging.debug("No temperature configured, using LLM service default.")

            response = self.client.chat.completions.create(**api_args)
            logging.debug(f"Raw LLM API response: {response}")

            if not response.choices or not response.choices[0].message or not response.choices[0].message.content:
                logging.warning("LLM response structure invalid or message content is missing/empty.")
                return None

            completion = response.choices[0].message.content.strip()
            if completion:
                return completion
            logging.warning("LLM returned an empty response after stripping.")
            return None

        except (AuthenticationError, APIConnectionError, RateLimitError, BadRequestError, APITimeoutError) as e:
            logging.error(f"LLM API call failed ({type(e).__name__}): {e}")
            return None
        except APIError as e:
            logging.error(f"LLM API call failed: API Error: {e}")
            return None
        except Exception as e:
            logging.error(f"Unexpected error processing with LLM: {e}", exc_info=True)
            return None
