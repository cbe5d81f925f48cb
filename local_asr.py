# Local Whisper transcription backend
# Runs a transformers speech-to-text model on the best available device

import os
import gc
import logging
import threading
from typing import Optional

import librosa
import numpy as np
import torch
from transformers import AutoModelForSpeechSeq2Seq, AutoProcessor

from config import TranscriptionConfig

WHISPER_WINDOW_S = 30

def detect_device_and_dtype(device_setting: str = 'auto'):
    """Resolve the effective torch device and dtype. Prioritizes CUDA > MPS > CPU."""
    has_cuda = torch.cuda.is_available()
    has_mps = torch.backends.mps.is_available()

    detected_device = "cpu"
    if has_cuda:
        detected_device = "cuda:0"
    elif has_mps:
        detected_device = "mps"

    if device_setting == 'cpu':
        effective_device = "cpu"
    elif device_setting == 'gpu' and detected_device == "cpu":
        logging.warning("DEVICE set to 'gpu', but no compatible GPU detected. Falling back to CPU.")
        effective_device = "cpu"
    else:
        effective_device = detected_device

    # CPU strongly prefers float32
    dtype = torch.float32 if effective_device == "cpu" else torch.float16
    logging.info(f"Local ASR device: {effective_device} ({dtype})")
    return effective_device, dtype

class LocalWhisperTranscriber:
    """Transcribes segment files with a locally loaded Whisper checkpoint.

    The model is loaded on first use and kept until release() is called.
    """

    def __init__(self, config: TranscriptionConfig, target_sample_rate: int = 16000):
        self.config = config
        self.target_sample_rate = target_sample_rate
        self.device, self.torch_dtype = detect_device_and_dtype(config.DEVICE_SETTING)
        self._model = None
        self._processor = None
        self._lock = threading.Lock()

    def _get_model_and_processor(self):
        with self._lock:
            if self._model is not None and self._processor is not None:
                return self._model, self._processor
            checkpoint = self.config.LOCAL_MODEL_NAME
            logging.info(f"Loading local ASR model '{checkpoint}' onto {self.device}...")
            load_args = {"torch_dtype": self.torch_dtype, "use_safetensors": True}
            if self.device != "cpu":
                load_args["low_cpu_mem_usage"] = True
                load_args["device_map"] = self.device
            model = AutoModelForSpeechSeq2Seq.from_pretrained(checkpoint, **load_args)
            if self.device == "cpu" and str(model.device) != "cpu":
                model = model.to("cpu")
            self._processor = AutoProcessor.from_pretrained(checkpoint)
            self._model = model
            logging.info(f"Local ASR model ready on {model.device}")
            return self._model, self._processor

    def release(self):
        """Drop the model and free accelerator memory."""
        with self._lock:
            if self._model is None:
                return
            self._model = None
            self._processor = None
            gc.collect()
            if torch.cuda.is_available():
                torch.cuda.empty_cache()
            logging.info("Local ASR model released.")

    def transcribe(self, audio_path: str, language: Optional[str] = None, prompt: Optional[str] = None) -> Optional[str]:
        """Transcribe one segment file. Returns None on failure, "" for silent audio."""
        segment_name = os.path.basename(audio_path)
        try:
            audio_array, _ = librosa.load(audio_path, sr=self.target_sample_rate, mono=True)
        except Exception as e:
            logging.error(f"Could not load segment {segment_name}: {e}")
            return None
        if len(audio_array) == 0:
            logging.warning(f"Segment {segment_name} contains no samples.")
            return ""

        try:
            model, processor = self._get_model_and_processor()
        except Exception as e:
            logging.error(f"Failed to load local ASR model: {e}", exc_info=True)
            return None

        processor_args = {
            "sampling_rate": self.target_sample_rate,
            "return_tensors": "pt",
            "return_attention_mask": True,
        }
        if len(audio_array) > WHISPER_WINDOW_S * self.target_sample_rate:
            # Long-form generation needs the full, unpadded feature sequence
            processor_args.update({"truncation": False, "padding": "longest"})

        generate_kwargs = {"task": "transcribe"}
        if language:
            generate_kwargs["language"] = language
        try:
            inputs = processor(np.asarray(audio_array, dtype=np.float32), **processor_args)
            input_features = inputs["input_features"].to(dtype=model.dtype, device=model.device)
            attention_mask = inputs["attention_mask"].to(device=model.device)
            if prompt:
                generate_kwargs["prompt_ids"] = torch.as_tensor(
                    processor.get_prompt_ids(prompt, return_tensors="np"), device=model.device
                )
            with torch.no_grad():
                predicted_ids = model.generate(input_features, attention_mask=attention_mask, **generate_kwargs)
            text = processor.batch_decode(predicted_ids, skip_special_tokens=True)[0]
        except torch.cuda.OutOfMemoryError as e:
            logging.error(f"Out of memory transcribing {segment_name}: {e}")
            gc.collect()
            if torch.cuda.is_available():
                torch.cuda.empty_cache()
            return None
        except Exception as e:
            logging.error(f"Local transcription of {segment_name} failed: {e}", exc_info=True)
            return None

        if prompt and text.lstrip().startswith(prompt.strip()):
            # Some transformers versions echo the prompt tokens in the decoded text
            text = text.lstrip()[len(prompt.strip()):]
        return text.strip()
