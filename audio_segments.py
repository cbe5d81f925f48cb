"""
Segment source: loudness normalization and fixed-duration splitting.

Audio is loaded mono at the target sample rate with librosa, normalized to an
integrated loudness target (ITU-R BS.1770, measured by torchaudio) and cut
into equally sized WAV segment files named ``segment_000.wav``,
``segment_001.wav``, ... in source order. Any failure here is a setup failure
and raises :class:`SegmentationError`.
"""

import os
import glob
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import librosa
import numpy as np
import soundfile as sf
import torch
import torchaudio

from config import AudioConfig

SEGMENT_PATTERN = "segment_{index:03d}.wav"
# BS.1770 gating blocks are 400 ms long
MIN_LOUDNESS_WINDOW_S = 0.4

class SegmentationError(RuntimeError):
    """Raised when an input file cannot be normalized or split."""

@dataclass(frozen=True)
class Segment:
    index: int
    path: str
    duration_s: float

    @property
    def segment_id(self) -> str:
        return f"segment_{self.index:03d}"

def load_audio(file_path: str, target_sr: int) -> Tuple[np.ndarray, int]:
    """Load any ffmpeg/libsndfile-readable file as a mono float32 array at target_sr."""
    logging.debug(f"Loading audio file: {file_path}")
    if not os.path.isfile(file_path):
        raise SegmentationError(f"Audio file not found: {file_path}")
    try:
        y, sr = librosa.load(file_path, sr=target_sr, mono=True)
    except Exception as e:
        raise SegmentationError(f"Could not decode {file_path}: {e}") from e
    return y.astype(np.float32, copy=False), sr

def normalize_loudness(y: np.ndarray, sr: int, target_lufs: float = -23.0,
                       peak_ceiling_db: float = -2.0) -> np.ndarray:
    """Apply gain so the integrated loudness hits target_lufs, then limit peaks to the ceiling.

    Audio shorter than one gating block, or silent audio, is returned unchanged.
    Raises SegmentationError if the loudness cannot be measured.
    """
    if len(y) < int(MIN_LOUDNESS_WINDOW_S * sr):
        logging.debug("Audio too short for loudness measurement, skipping normalization.")
        return y
    try:
        waveform = torch.from_numpy(np.ascontiguousarray(y, dtype=np.float32)).unsqueeze(0)
        measured = float(torchaudio.functional.loudness(waveform, sr))
    except Exception as e:
        raise SegmentationError(f"Loudness measurement failed: {e}") from e
    if not np.isfinite(measured):
        logging.debug("Loudness undefined (silent audio), skipping normalization.")
        return y
    gain_db = target_lufs - measured
    logging.debug(f"Measured loudness {measured:.1f} LUFS, applying {gain_db:+.1f} dB")
    normalized = y * (10.0 ** (gain_db / 20.0))

    peak = float(np.max(np.abs(normalized))) if len(normalized) else 0.0
    ceiling = 10.0 ** (peak_ceiling_db / 20.0)
    if peak > ceiling:
        normalized = normalized * (ceiling / peak)
    return normalized.astype(np.float32, copy=False)

def normalize_audio(file_path: str, output_folder: str, target_sr: int = 16000,
                    target_lufs: float = -23.0, peak_ceiling_db: float = -2.0) -> str:
    """Write a loudness-normalized copy of file_path into output_folder and return its path."""
    y, sr = load_audio(file_path, target_sr)
    normalized = normalize_loudness(y, sr, target_lufs, peak_ceiling_db)
    base_name = os.path.splitext(os.path.basename(file_path))[0]
    normalized_path = os.path.join(output_folder, f"{base_name}.normalized.wav")
    try:
        os.makedirs(output_folder, exist_ok=True)
        sf.write(normalized_path, normalized, sr, subtype="PCM_16")
    except Exception as e:
        raise SegmentationError(f"Could not write normalized audio {normalized_path}: {e}") from e
    logging.info(f"Normalization done: {normalized_path}")
    return normalized_path

def split_audio(y: np.ndarray, sr: int, segment_duration_s: float) -> List[np.ndarray]:
    """Cut y into consecutive chunks of segment_duration_s; the last chunk may be shorter."""
    if segment_duration_s <= 0:
        raise ValueError("Segment duration must be positive")
    max_samples = max(1, int(round(segment_duration_s * sr)))
    return [y[start:start + max_samples] for start in range(0, len(y), max_samples)]

def _clear_stale_segments(output_folder: str):
    for stale in glob.glob(os.path.join(output_folder, "segment_*.wav")):
        os.remove(stale)

def split_audio_file(file_path: str, segment_duration_s: float, output_folder: str,
                     target_sr: int = 16000) -> List[Segment]:
    """Split file_path into ordered segment files inside output_folder."""
    y, sr = load_audio(file_path, target_sr)
    if len(y) == 0:
        raise SegmentationError(f"No audio samples in {file_path}")
    chunks = split_audio(y, sr, segment_duration_s)

    segments = []
    try:
        os.makedirs(output_folder, exist_ok=True)
        _clear_stale_segments(output_folder)
        for index, chunk in enumerate(chunks):
            path = os.path.join(output_folder, SEGMENT_PATTERN.format(index=index))
            sf.write(path, chunk, sr, subtype="PCM_16")
            segments.append(Segment(index=index, path=path, duration_s=len(chunk) / sr))
    except (OSError, RuntimeError) as e:
        raise SegmentationError(f"Could not write segments to {output_folder}: {e}") from e
    logging.info(f"Split {os.path.basename(file_path)} into {len(segments)} segments of up to {segment_duration_s:g}s.")
    return segments

def prepare_segments(file_path: str, config: AudioConfig, output_folder: Optional[str] = None) -> List[Segment]:
    """Optional normalization pre-pass followed by fixed-duration splitting.

    Segment files go to output_folder, defaulting to config.SEGMENTS_DIR.
    """
    output_folder = output_folder or config.SEGMENTS_DIR
    source_path = file_path
    normalized_path = None
    if config.NORMALIZE_AUDIO:
        normalized_path = normalize_audio(
            file_path,
            output_folder,
            target_sr=config.TARGET_SAMPLE_RATE,
            target_lufs=config.TARGET_LUFS,
            peak_ceiling_db=config.PEAK_CEILING_DB,
        )
        source_path = normalized_path
    try:
        return split_audio_file(source_path, config.SEGMENT_DURATION_S, output_folder, config.TARGET_SAMPLE_RATE)
    finally:
        if normalized_path and not config.KEEP_SEGMENTS:
            discard_file(normalized_path)

def discard_file(path: str):
    """Remove a file if it exists."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.warning(f"Could not remove {path}: {e}")

def discard_segment(segment: Segment):
    discard_file(segment.path)
