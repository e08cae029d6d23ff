"""
Biosignal acquisition sources

This module provides the upstream adapters that feed the quality gate and the
measurement recorder: a BrainFlow board reader that turns raw samples into
per-channel quality scores and summary metrics, and a synthetic source for
development and testing.
"""

import logging
import time
from typing import Dict, List, Optional

import numpy as np
from scipy import signal as sp_signal

from ..core.config import (
    SERIAL_PORT, FS_EXPECTED, NOTCH_HZ, BANDPASS, AMPLITUDE_SQI_LIMIT_UV,
    MOTION_STD_LIMIT_G, MOTION_QUALITY_MOVING,
)
from ..core.data_types import Channel, QualitySample, MetricFrame

# Optional imports with fallbacks
try:
    from brainflow.board_shim import BoardShim, BrainFlowInputParams, BoardIds
    from brainflow.data_filter import DataFilter
    BRAINFLOW_AVAILABLE = True
except ImportError:
    BRAINFLOW_AVAILABLE = False
    logging.warning("BrainFlow not available - use fake mode instead")


BOARD_NAMES = {
    "synthetic": "SYNTHETIC_BOARD",
    "cyton": "CYTON_BOARD",
    "cyton-daisy": "CYTON_DAISY_BOARD",
    "ganglion": "GANGLION_BOARD",
    "muse-s": "MUSE_S_BOARD",
    "muse-2": "MUSE_2_BOARD",
}

BAND_NAMES = ("delta", "theta", "alpha", "beta", "gamma")


def compute_amplitude_sqi(data: np.ndarray, limit: float = AMPLITUDE_SQI_LIMIT_UV) -> float:
    """
    Amplitude signal-quality index for one channel

    Args:
        data: Filtered samples of one channel
        limit: Absolute amplitude above which a sample counts as bad

    Returns:
        float: Percentage (0-100) of samples within the amplitude limit
    """
    if data.size == 0:
        return 0.0
    good = np.abs(data) <= limit
    return float(100.0 * np.count_nonzero(good) / data.size)


def compute_ppg_sqi(data: np.ndarray) -> float:
    """Percentage of PPG samples within three standard deviations of the mean"""
    if data.size == 0:
        return 0.0
    std = np.std(data)
    if std == 0:
        return 0.0
    good = np.abs(data - np.mean(data)) <= 3 * std
    return float(100.0 * np.count_nonzero(good) / data.size)


def compute_motion_quality(accel: np.ndarray, limit: float = MOTION_STD_LIMIT_G) -> float:
    """
    Motion quality from accelerometer spread

    Args:
        accel: Accelerometer samples (axes x samples)

    Returns:
        float: 100 while stationary, MOTION_QUALITY_MOVING while moving
    """
    if accel.size == 0:
        return 100.0
    magnitude = np.sqrt(np.sum(accel ** 2, axis=0))
    return 100.0 if float(np.std(magnitude)) <= limit else MOTION_QUALITY_MOVING


class BrainFlowQualitySource:
    """
    Quality and metric source backed by a BrainFlow board

    Every call to read_quality() looks at the most recent second of data,
    band-pass filters each EEG channel and emits one QualitySample per
    channel. read_metrics() summarises the same buffer into band powers,
    heart rate and activity level.
    """

    def __init__(self, board: str = "synthetic", serial_port: str = SERIAL_PORT,
                 window_sec: float = 1.0, ppg_window_sec: float = 10.0):
        self.board_name = board
        self.serial_port = serial_port
        self.window_sec = window_sec
        self.ppg_window_sec = ppg_window_sec
        self.board = None
        self.board_id = None
        self.fs = FS_EXPECTED
        self.eeg_channels: List[int] = []
        self.ppg_channels: List[int] = []
        self.accel_channels: List[int] = []
        self.is_connected = False
        self.sensor_contacted = False

    def connect(self) -> bool:
        """
        Prepare the BrainFlow session and start streaming

        Returns:
            bool: True if connection successful, False otherwise
        """
        if not BRAINFLOW_AVAILABLE:
            logging.error("BrainFlow not available. Install with: pip install brainflow")
            return False

        if self.board_name not in BOARD_NAMES:
            logging.error(f"Unknown board: {self.board_name}")
            return False

        try:
            params = BrainFlowInputParams()
            params.serial_port = self.serial_port

            self.board_id = getattr(BoardIds, BOARD_NAMES[self.board_name]).value
            self.board = BoardShim(self.board_id, params)

            self.fs = BoardShim.get_sampling_rate(self.board_id)
            self.eeg_channels = BoardShim.get_eeg_channels(self.board_id)
            self.ppg_channels = self._optional_channels(BoardShim.get_ppg_channels)
            self.accel_channels = self._optional_channels(BoardShim.get_accel_channels)

            logging.info(f"BrainFlow EEG channels: {self.eeg_channels}")
            logging.info(f"PPG channels: {self.ppg_channels}, accel channels: {self.accel_channels}")
            logging.info(f"Sampling rate: {self.fs} Hz")

            self.board.prepare_session()
            self.board.start_stream()

            self._design_filters()
            self.is_connected = True
            logging.info(f"Connected to {self.board_name} board")
            return True

        except Exception as e:
            logging.error(f"BrainFlow connection failed: {e}")
            logging.error("Hint: Check the port, ensure the board is on, and no other software is using it")
            return False

    def _optional_channels(self, getter) -> List[int]:
        try:
            return list(getter(self.board_id))
        except Exception:
            return []

    def _design_filters(self):
        nyquist = self.fs / 2
        self.notch_b, self.notch_a = sp_signal.iirnotch(NOTCH_HZ / nyquist, 30)
        high = min(BANDPASS[1], nyquist * 0.9)
        self.bp_b, self.bp_a = sp_signal.butter(4, [BANDPASS[0] / nyquist, high / nyquist], btype='band')

    def _filter(self, data: np.ndarray) -> np.ndarray:
        filtered = sp_signal.filtfilt(self.notch_b, self.notch_a, data)
        return sp_signal.filtfilt(self.bp_b, self.bp_a, filtered)

    def _recent(self, seconds: float) -> Optional[np.ndarray]:
        n_samples = int(seconds * self.fs)
        data = self.board.get_current_board_data(n_samples)
        # filtfilt needs more than 3 * filter order samples
        if data.shape[1] < 30:
            return None
        return data

    def read_quality(self, now: Optional[float] = None) -> List[QualitySample]:
        """
        Per-channel quality samples for the most recent window

        Returns an empty list while the board is not streaming yet.
        """
        if not self.is_connected:
            return []
        now = time.time() if now is None else now

        try:
            data = self._recent(self.window_sec)
            if data is None:
                return []

            samples = []
            flat_channels = 0
            for ch in self.eeg_channels:
                raw = data[ch, :]
                if np.std(raw) < 1e-6:
                    flat_channels += 1
                filtered = self._filter(raw)
                samples.append(QualitySample(Channel.EEG, compute_amplitude_sqi(filtered), now))

            for ch in self.ppg_channels:
                samples.append(QualitySample(Channel.PPG, compute_ppg_sqi(data[ch, :]), now))

            if self.accel_channels:
                motion = compute_motion_quality(data[self.accel_channels, :])
                samples.append(QualitySample(Channel.MOTION, motion, now))

            # A flat line on every EEG electrode means the headset is off
            self.sensor_contacted = flat_channels < len(self.eeg_channels)
            return samples

        except Exception as e:
            logging.error(f"Failed to read quality: {e}")
            return []

    def read_metrics(self, now: Optional[float] = None) -> MetricFrame:
        """Summary metrics for the most recent window"""
        now = time.time() if now is None else now
        if not self.is_connected:
            return MetricFrame(timestamp=now)

        eeg: Dict[str, float] = {}
        ppg: Dict[str, float] = {}
        acc: Dict[str, float] = {}

        try:
            data = self._recent(max(self.window_sec, self.ppg_window_sec))
            if data is None:
                return MetricFrame(timestamp=now)

            if self.eeg_channels:
                eeg = self._eeg_metrics(data)
            if self.ppg_channels:
                ppg = self._ppg_metrics(data[self.ppg_channels[0], :])
            if self.accel_channels:
                acc = self._acc_metrics(data[self.accel_channels, :])

        except Exception as e:
            logging.error(f"Failed to read metrics: {e}")

        return MetricFrame(timestamp=now, eeg=eeg, ppg=ppg, acc=acc)

    def _eeg_metrics(self, data: np.ndarray) -> Dict[str, float]:
        n_samples = int(self.window_sec * self.fs)
        window = np.ascontiguousarray(data[:, -n_samples:])
        avg_powers, _ = DataFilter.get_avg_band_powers(window, self.eeg_channels, self.fs, True)
        powers = dict(zip(BAND_NAMES, (float(p) for p in avg_powers)))

        epsilon = 1e-6
        relax_index = powers["alpha"] / (powers["theta"] + powers["beta"] + epsilon)
        focus_index = powers["beta"] / (powers["alpha"] + epsilon)

        powers["attentionIndex"] = float(np.clip(50 * focus_index, 0, 100))
        powers["meditationIndex"] = float(np.clip(50 * relax_index, 0, 100))
        powers["stressIndex"] = float(np.clip(100 * powers["beta"] / (powers["alpha"] + powers["beta"] + epsilon), 0, 100))
        powers["fatigueIndex"] = float(np.clip(100 * powers["theta"] / (powers["theta"] + powers["beta"] + epsilon), 0, 100))
        return powers

    def _ppg_metrics(self, ppg: np.ndarray) -> Dict[str, float]:
        detrended = sp_signal.detrend(ppg)
        peaks, _ = sp_signal.find_peaks(detrended, distance=max(1, int(0.33 * self.fs)))
        if len(peaks) < 2:
            return {}

        rr_ms = np.diff(peaks) / self.fs * 1000.0
        heart_rate = 60000.0 / float(np.mean(rr_ms))
        hrv = float(np.std(rr_ms))
        return {
            "heartRate": heart_rate,
            "heartRateVariability": hrv,
            "stressScore": float(np.clip(100 - hrv, 0, 100)),
        }

    def _acc_metrics(self, accel: np.ndarray) -> Dict[str, float]:
        magnitude = np.sqrt(np.sum(accel ** 2, axis=0))
        spread = float(np.std(magnitude))
        return {
            "movementIntensity": spread,
            "activityLevel": float(np.clip(100 * spread / (MOTION_STD_LIMIT_G * 2), 0, 100)),
            "postureStability": float(np.clip(1 - spread / (MOTION_STD_LIMIT_G * 2), 0, 1)),
        }

    def disconnect(self):
        """Clean disconnect from the board"""
        try:
            if self.board is not None:
                self.board.stop_stream()
                self.board.release_session()
                logging.info("BrainFlow disconnected")
        except Exception as e:
            logging.error(f"Disconnect error: {e}")
        finally:
            self.is_connected = False


class FakeBiosignalSource:
    """
    Generate synthetic quality samples and metrics for testing

    Quality scores hover around configurable per-channel levels; tests drive
    the scenarios they need by calling set_contact() and degrade().
    """

    def __init__(self, seed: Optional[int] = None, samples_per_tick: int = 10,
                 eeg_quality: float = 95.0, ppg_quality: float = 93.0,
                 motion_quality: float = 98.0, noise: float = 1.0,
                 has_ppg: bool = True, has_acc: bool = True):
        self.rng = np.random.default_rng(seed)
        self.samples_per_tick = samples_per_tick
        self.levels = {
            Channel.EEG: eeg_quality,
            Channel.PPG: ppg_quality,
            Channel.MOTION: motion_quality,
        }
        self.noise = noise
        self.has_ppg = has_ppg
        self.has_acc = has_acc
        self.sensor_contacted = True
        self.is_connected = False

    def connect(self) -> bool:
        self.is_connected = True
        return True

    def disconnect(self):
        self.is_connected = False

    def set_contact(self, contacted: bool):
        self.sensor_contacted = contacted

    def degrade(self, channel: Channel, level: float):
        """Move the quality level of one channel"""
        self.levels[channel] = level

    def _channels(self):
        channels = [Channel.EEG]
        if self.has_ppg:
            channels.append(Channel.PPG)
        if self.has_acc:
            channels.append(Channel.MOTION)
        return channels

    def read_quality(self, now: Optional[float] = None) -> List[QualitySample]:
        now = time.time() if now is None else now
        samples = []
        for channel in self._channels():
            scores = self.levels[channel] + self.rng.normal(0, self.noise, self.samples_per_tick)
            for score in np.clip(scores, 0, 100):
                samples.append(QualitySample(channel, float(score), now))
        return samples

    def read_metrics(self, now: Optional[float] = None) -> MetricFrame:
        now = time.time() if now is None else now
        normal = self.rng.normal

        powers = {
            "delta": abs(normal(20, 2)),
            "theta": abs(normal(12, 1.5)),
            "alpha": abs(normal(15, 2)),
            "beta": abs(normal(10, 1.5)),
            "gamma": abs(normal(4, 0.5)),
        }
        eeg = dict(powers)
        eeg["attentionIndex"] = float(np.clip(normal(65, 5), 0, 100))
        eeg["meditationIndex"] = float(np.clip(normal(55, 5), 0, 100))
        eeg["stressIndex"] = float(np.clip(normal(40, 5), 0, 100))
        eeg["fatigueIndex"] = float(np.clip(normal(35, 5), 0, 100))

        ppg = {}
        if self.has_ppg:
            ppg = {
                "heartRate": float(np.clip(normal(72, 3), 40, 180)),
                "heartRateVariability": abs(normal(45, 5)),
                "stressScore": float(np.clip(normal(38, 5), 0, 100)),
                "autonomicBalance": abs(normal(1.2, 0.1)),
            }

        acc = {}
        if self.has_acc:
            acc = {
                "activityLevel": float(np.clip(normal(10, 2), 0, 100)),
                "movementIntensity": abs(normal(0.05, 0.01)),
                "postureStability": float(np.clip(normal(0.9, 0.03), 0, 1)),
            }

        return MetricFrame(timestamp=now, eeg=eeg, ppg=ppg, acc=acc)
