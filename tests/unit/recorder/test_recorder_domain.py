"""Unit tests for the recorder domain layer.

Covers:
- Level metering (smoothing, silence floor, clamping)
- Downmix, peaks overview and duration formatting helpers
- Sample accumulation and freezing
- Observable recorder state and the immutable entities
"""

from __future__ import annotations

import math
from dataclasses import FrozenInstanceError

import numpy as np
import pytest

from response_audio.recorder.domain import (
    AUDIO_BIT_DEPTH,
    AUDIO_CHANNELS_MONO,
    DB_MAX,
    DB_MIN,
    AudioDevice,
    AudioMetadata,
    LevelMeter,
    MonoSampleBuffer,
    RecorderState,
    RecordingState,
    SampleAccumulator,
    SampleChunk,
)
from response_audio.recorder.domain.dsp import (
    amplitude_to_db,
    build_peaks,
    downmix_to_mono,
    format_duration,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def mock_device() -> AudioDevice:
    return AudioDevice(device_id="0", label="Mock Test Microphone", group_id="0", channels=2)


@pytest.fixture
def level_meter() -> LevelMeter:
    return LevelMeter()


@pytest.fixture
def recorder_state() -> RecorderState:
    return RecorderState()


def _constant(value: float, frames: int = 2048) -> np.ndarray:
    return np.full(frames, value, dtype=np.float32)


# =============================================================================
# Test LevelMeter
# =============================================================================

class TestLevelMeter:
    """Tests for the smoothed level meter."""

    def test_initial_level_is_floor(self, level_meter: LevelMeter):
        assert level_meter.level_db == DB_MIN
        assert level_meter.ema_mean_square == 0.0

    def test_silence_reads_exact_floor(self, level_meter: LevelMeter):
        for _ in range(10):
            level = level_meter.add_samples(_constant(0.0), 48000)
        assert level == DB_MIN

    def test_first_chunk_follows_smoothing_formula(self, level_meter: LevelMeter):
        level = level_meter.add_samples(_constant(0.5), 48000)

        beta = math.exp(-(2048 / 48000) / 0.4)
        expected_ms = (1.0 - beta) * 0.25
        assert math.isclose(level_meter.ema_mean_square, expected_ms, rel_tol=1e-6)
        assert math.isclose(level, 10.0 * math.log10(expected_ms), abs_tol=1e-4)

    def test_level_rises_towards_signal_rms(self, level_meter: LevelMeter):
        levels = [level_meter.add_samples(_constant(0.5), 48000) for _ in range(200)]

        assert all(b >= a for a, b in zip(levels, levels[1:]))
        assert levels[-1] <= 20.0 * math.log10(0.5) + 1e-6
        assert levels[-1] > 20.0 * math.log10(0.5) - 0.1

    def test_smoothing_is_independent_of_block_size(self):
        split = LevelMeter()
        split.add_samples(_constant(0.3, 1024), 48000)
        split.add_samples(_constant(0.3, 1024), 48000)

        whole = LevelMeter()
        whole.add_samples(_constant(0.3, 2048), 48000)

        assert math.isclose(split.ema_mean_square, whole.ema_mean_square, rel_tol=1e-6)

    def test_full_scale_clamps_to_zero(self, level_meter: LevelMeter):
        for _ in range(500):
            level = level_meter.add_samples(_constant(1.0), 48000)
        assert DB_MIN < level <= DB_MAX

    def test_empty_chunk_keeps_level(self, level_meter: LevelMeter):
        level_meter.add_samples(_constant(0.5), 48000)
        before = level_meter.level_db
        assert level_meter.add_samples(np.zeros(0, dtype=np.float32), 48000) == before

    def test_reset_returns_to_floor(self, level_meter: LevelMeter):
        level_meter.add_samples(_constant(0.5), 48000)
        level_meter.reset()
        assert level_meter.level_db == DB_MIN
        assert level_meter.ema_mean_square == 0.0

    def test_invalid_sample_rate_rejected(self, level_meter: LevelMeter):
        with pytest.raises(ValueError):
            level_meter.add_samples(_constant(0.1), 0)


# =============================================================================
# Test DSP helpers
# =============================================================================

class TestDspHelpers:
    """Tests for downmix, dB conversion, peaks and duration formatting."""

    def test_downmix_averages_channels(self):
        block = np.array([[1.0, 0.0], [0.5, 0.5], [-1.0, 1.0]], dtype=np.float32)
        mono = downmix_to_mono(block)
        assert mono.dtype == np.float32
        np.testing.assert_allclose(mono, [0.5, 0.5, 0.0])

    def test_downmix_single_channel_is_copy(self):
        block = np.array([[0.1], [0.2]], dtype=np.float32)
        mono = downmix_to_mono(block)
        np.testing.assert_allclose(mono, [0.1, 0.2])
        mono[0] = 9.0
        assert block[0, 0] == pytest.approx(0.1)

    def test_downmix_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            downmix_to_mono(np.zeros((2, 2, 2), dtype=np.float32))

    def test_amplitude_to_db_uses_floor(self):
        assert amplitude_to_db(1.0) == pytest.approx(0.0)
        assert amplitude_to_db(0.0) == pytest.approx(-160.0)

    def test_build_peaks_min_max_per_column(self):
        mono = np.arange(8, dtype=np.float32)
        peaks = build_peaks(mono, 4)
        assert peaks.shape == (4, 2)
        np.testing.assert_allclose(peaks, [[0, 1], [2, 3], [4, 5], [6, 7]])

    def test_build_peaks_short_buffer_pads_with_zeros(self):
        peaks = build_peaks(np.array([0.5, -0.5, 0.25], dtype=np.float32), 5)
        np.testing.assert_allclose(peaks[:3, 0], [0.5, -0.5, 0.25])
        np.testing.assert_allclose(peaks[3:], 0.0)

    def test_build_peaks_empty_buffer(self):
        assert not build_peaks(np.zeros(0, dtype=np.float32), 3).any()

    def test_build_peaks_rejects_zero_width(self):
        with pytest.raises(ValueError):
            build_peaks(np.zeros(4, dtype=np.float32), 0)

    @pytest.mark.parametrize("seconds,expected", [
        (0.0, "0:00"),
        (9.99, "0:09"),
        (65.4, "1:05"),
        (600.0, "10:00"),
        (-3.0, "0:00"),
    ])
    def test_format_duration(self, seconds: float, expected: str):
        assert format_duration(seconds) == expected


# =============================================================================
# Test SampleAccumulator
# =============================================================================

class TestSampleAccumulator:
    """Tests for append-only mono accumulation."""

    def test_accepts_only_while_active(self):
        accumulator = SampleAccumulator()
        accumulator.accept(_constant(0.1, 128))
        assert accumulator.sample_count == 0

        accumulator.begin()
        accumulator.accept(_constant(0.1, 128))
        accumulator.accept(_constant(0.2, 64))
        assert accumulator.sample_count == 192

    def test_finish_returns_every_sample_in_order(self):
        accumulator = SampleAccumulator()
        accumulator.begin()
        accumulator.accept(np.array([0.1, 0.2], dtype=np.float32))
        accumulator.accept(np.array([0.3], dtype=np.float32))

        mono = accumulator.finish()
        np.testing.assert_allclose(mono, [0.1, 0.2, 0.3])
        assert accumulator.active is False
        assert accumulator.buffer.frozen is True

    def test_finish_stops_further_samples(self):
        accumulator = SampleAccumulator()
        accumulator.begin()
        accumulator.accept(_constant(0.1, 16))
        accumulator.finish()
        accumulator.accept(_constant(0.1, 16))
        assert accumulator.sample_count == 16

    def test_begin_clears_previous_take(self):
        accumulator = SampleAccumulator()
        accumulator.begin()
        accumulator.accept(_constant(0.1, 16))
        accumulator.finish()
        accumulator.begin()
        assert accumulator.sample_count == 0
        assert accumulator.buffer.frozen is False

    def test_discard_drops_samples(self):
        accumulator = SampleAccumulator()
        accumulator.begin()
        accumulator.accept(_constant(0.1, 16))
        accumulator.discard()
        assert accumulator.sample_count == 0
        assert accumulator.active is False

    def test_frozen_buffer_rejects_append(self):
        buffer = MonoSampleBuffer()
        buffer.append(_constant(0.1, 4))
        buffer.freeze()
        with pytest.raises(RuntimeError):
            buffer.append(_constant(0.1, 4))

    def test_buffer_copies_input(self):
        buffer = MonoSampleBuffer()
        source = np.array([0.1, 0.2], dtype=np.float32)
        buffer.append(source)
        source[:] = 0.0
        np.testing.assert_allclose(buffer.to_array(), [0.1, 0.2])
        assert buffer.chunk_count == 1


# =============================================================================
# Test RecorderState
# =============================================================================

class TestRecorderState:
    """Tests for the observable recorder state."""

    def test_initial_state(self, recorder_state: RecorderState):
        snapshot = recorder_state.snapshot()
        assert snapshot.state is RecordingState.IDLE
        assert snapshot.device is None
        assert snapshot.level_db == DB_MIN
        assert snapshot.status_text == "No microphone selected"

    def test_subscribe_receives_current_snapshot(self, recorder_state: RecorderState):
        received = []
        recorder_state.subscribe(received.append)
        assert len(received) == 1
        assert received[0].state is RecordingState.IDLE

    def test_observer_notified_on_change(self, recorder_state: RecorderState, mock_device: AudioDevice):
        received = []
        recorder_state.subscribe(received.append)
        recorder_state.set_device(mock_device)
        recorder_state.set_state(RecordingState.MONITORING)

        assert [snapshot.state for snapshot in received] == [
            RecordingState.IDLE,
            RecordingState.IDLE,
            RecordingState.MONITORING,
        ]
        assert received[-1].device == mock_device

    def test_unchanged_values_do_not_notify(self, recorder_state: RecorderState, mock_device: AudioDevice):
        received = []
        recorder_state.set_device(mock_device)
        recorder_state.subscribe(received.append)
        recorder_state.set_device(mock_device)
        recorder_state.set_state(RecordingState.IDLE)
        assert len(received) == 1

    def test_unsubscribe_stops_notifications(self, recorder_state: RecorderState, mock_device: AudioDevice):
        received = []
        recorder_state.subscribe(received.append)
        recorder_state.unsubscribe(received.append)
        recorder_state.set_device(mock_device)
        assert len(received) == 1

    def test_failing_observer_does_not_break_others(self, recorder_state: RecorderState, mock_device: AudioDevice):
        received = []

        def _broken(_snapshot):
            raise RuntimeError("observer failure")

        recorder_state._observers.append(_broken)
        recorder_state.subscribe(received.append)
        recorder_state.set_device(mock_device)
        assert len(received) == 2

    def test_recording_resets_progress(self, recorder_state: RecorderState):
        recorder_state.set_state(RecordingState.MONITORING)
        recorder_state.set_error("old failure")
        recorder_state.set_state(RecordingState.RECORDING)
        snapshot = recorder_state.snapshot()
        assert snapshot.elapsed_seconds == 0.0
        assert snapshot.sample_count == 0
        assert snapshot.last_error is None

    def test_update_live_and_status_text(self, recorder_state: RecorderState, mock_device: AudioDevice):
        recorder_state.set_device(mock_device)
        recorder_state.set_state(RecordingState.RECORDING)
        recorder_state.update_live(-20.0, elapsed_seconds=75.2, sample_count=4096)

        snapshot = recorder_state.snapshot()
        assert snapshot.level_db == -20.0
        assert snapshot.sample_count == 4096
        assert snapshot.status_text == "Recording 1:15 (Mock Test Microphone)"

    def test_below_min_duration_only_while_recording(self, recorder_state: RecorderState):
        recorder_state.min_duration_seconds = 2.0
        recorder_state.set_state(RecordingState.RECORDING)
        recorder_state.update_live(-30.0, elapsed_seconds=1.0, sample_count=100)
        assert recorder_state.below_min_duration is True

        recorder_state.update_live(-30.0, elapsed_seconds=2.5, sample_count=200)
        assert recorder_state.below_min_duration is False

        recorder_state.set_state(RecordingState.MONITORING)
        recorder_state.update_live(-30.0, elapsed_seconds=0.5)
        assert recorder_state.below_min_duration is False

    def test_idle_resets_level(self, recorder_state: RecorderState):
        recorder_state.set_state(RecordingState.MONITORING)
        recorder_state.update_live(-12.0)
        recorder_state.set_state(RecordingState.IDLE)
        assert recorder_state.level_db == DB_MIN

    def test_snapshot_status_text(self, recorder_state: RecorderState, mock_device: AudioDevice):
        recorder_state.set_device(mock_device)
        recorder_state.set_state(RecordingState.MONITORING)
        snapshot = recorder_state.snapshot()

        assert snapshot.state is RecordingState.MONITORING
        assert snapshot.device == mock_device
        assert snapshot.status_text == "Monitoring: Mock Test Microphone"


# =============================================================================
# Test Entities
# =============================================================================

class TestEntities:
    """Tests for immutable device, chunk and metadata records."""

    def test_device_is_immutable(self, mock_device: AudioDevice):
        with pytest.raises(FrozenInstanceError):
            mock_device.label = "Changed"  # type: ignore[misc]

    def test_device_to_dict(self, mock_device: AudioDevice):
        assert mock_device.to_dict() == {
            "deviceId": "0",
            "label": "Mock Test Microphone",
            "groupId": "0",
        }

    def test_sample_chunk_geometry(self):
        chunk = SampleChunk(
            data=np.zeros((2048, 2), dtype=np.float32),
            chunk_index=1,
            sample_rate=48000,
            monotonic_time=0.0,
        )
        assert chunk.frames == 2048
        assert chunk.channels == 2
        assert chunk.duration_s == pytest.approx(2048 / 48000)

    def test_metadata_serialization(self):
        metadata = AudioMetadata(
            mic_name="Desk Mic",
            mic_device_id="3",
            sample_rate=48000,
            duration_sec=1.23456,
            true_peak_db=-3.14159,
            integrated_loudness_db=-20.55555,
        )
        payload = metadata.to_dict()

        assert payload["micName"] == "Desk Mic"
        assert payload["micDeviceId"] == "3"
        assert payload["bitDepth"] == AUDIO_BIT_DEPTH
        assert payload["channels"] == AUDIO_CHANNELS_MONO
        assert payload["durationSec"] == 1.23456

        summary = metadata.display_summary()
        assert summary["durationSec"] == 1.23
        assert summary["truePeakDb"] == -3.14
        assert summary["integratedLoudnessDb"] == -20.56
