from collections.abc import Callable

import numpy as np

FFT_SIZE = 256
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def spectrum_level(samples: np.ndarray, fft_size: int = FFT_SIZE) -> float:
    """Average spectral magnitude of the newest ``fft_size`` samples on a 0-100 scale.

    Magnitudes are mapped from MIN_DECIBELS..MAX_DECIBELS onto 0..255 per bin,
    the way a browser AnalyserNode reports byte frequency data, then averaged.
    Integer samples are treated as int16 PCM.
    """
    if samples.size == 0:
        return 0.0

    block = samples[-fft_size:].astype(np.float64)
    if np.issubdtype(samples.dtype, np.integer):
        block /= 32768.0
    if block.size < fft_size:
        block = np.pad(block, (fft_size - block.size, 0))

    spectrum = np.abs(np.fft.rfft(block * np.blackman(fft_size)))[: fft_size // 2] / fft_size
    decibels = 20 * np.log10(np.maximum(spectrum, 1e-12))
    scaled = np.clip((decibels - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS), 0.0, 1.0)
    return float(scaled.mean() * 100)


class SpectrumLevelMeter:
    """Level meter over whatever block ``read_block`` currently returns. Reads 0 once closed."""

    def __init__(self, read_block: Callable[[], np.ndarray]) -> None:
        self._read_block: Callable[[], np.ndarray] | None = read_block

    @property
    def closed(self) -> bool:
        return self._read_block is None

    def read_level(self) -> float:
        if self._read_block is None:
            return 0.0
        return spectrum_level(self._read_block())

    def close(self) -> None:
        self._read_block = None
