import numpy
import pytest

from sstv_blocks import peak_frequency, to_samples
from sstv_encoder import AMPLITUDE, END_TONE_TIME, SSTVEncoder, encode_sstv, vis_bits
from sstv_modes import MARTIN_1, ROBOT_36, ROBOT_72, SCOTTIE_1, MODES, VIS_BIT_SIZE

SAMPLE_RATE = 48000


def blank(mode):
    return numpy.zeros((mode.line_count, mode.line_width, 3), dtype=numpy.uint8)


def test_vis_bits_even_parity():
    for vis_code in range(128):
        bits = vis_bits(vis_code)
        assert len(bits) == 8
        assert sum(bits) % 2 == 0


def test_vis_bits_lsb_first():
    assert vis_bits(44) == [0, 0, 1, 1, 0, 1, 0, 1]
    assert vis_bits(8) == [0, 0, 0, 1, 0, 0, 0, 1]


def test_tone_length_and_amplitude():
    encoder = SSTVEncoder(SAMPLE_RATE)
    encoder.tone(1900, 0.010)
    samples = encoder.samples()

    assert len(samples) == 480
    assert numpy.abs(samples).max() <= AMPLITUDE
    assert peak_frequency(samples, SAMPLE_RATE) == pytest.approx(1900, abs=10)


def test_phase_is_continuous_across_segments():
    encoder = SSTVEncoder(SAMPLE_RATE)
    encoder.tone(1900, 0.0101)
    encoder.tone(1200, 0.0103)
    encoder.tone(2300, 0.0107)
    samples = encoder.samples()

    # No jump larger than the fastest tone can make in one sample
    max_step = AMPLITUDE*2*numpy.pi*2300/SAMPLE_RATE
    assert numpy.abs(numpy.diff(samples)).max() <= max_step + 1e-9


def test_phase_accumulates():
    encoder = SSTVEncoder(SAMPLE_RATE)
    encoder.tone(1200, 0.010)
    encoder.tone(1500, 0.010)

    expected = 2*numpy.pi*(1200*480 + 1500*480)/SAMPLE_RATE
    assert encoder.phase == pytest.approx(expected)


def test_sessions_do_not_share_phase():
    first = SSTVEncoder(SAMPLE_RATE)
    first.tone(1900, 0.1)

    second = SSTVEncoder(SAMPLE_RATE)
    assert second.phase == 0.0
    assert second.samples().size == 0


def test_scan_holds_each_pixel_for_equal_share():
    scanned = SSTVEncoder(SAMPLE_RATE)
    scanned.scan(numpy.array([0, 255], dtype=numpy.uint8), 0.010)

    toned = SSTVEncoder(SAMPLE_RATE)
    toned.tone(1500, 0.005)
    toned.tone(1500 + 255*3.1372549, 0.005)

    assert numpy.allclose(scanned.samples(), toned.samples())


def test_scan_uneven_boundaries_take_preceding_pixel():
    encoder = SSTVEncoder(SAMPLE_RATE)
    # 3 pixels over 10 samples
    encoder.scan(numpy.array([0, 128, 255], dtype=numpy.uint8), 10/SAMPLE_RATE)

    assert len(encoder.samples()) == 10


def test_header_length():
    encoder = SSTVEncoder(SAMPLE_RATE)
    encoder.header(MARTIN_1)

    assert len(encoder.samples()) == to_samples(0.610, SAMPLE_RATE) + 10*to_samples(VIS_BIT_SIZE, SAMPLE_RATE)


def test_header_vis_tones():
    encoder = SSTVEncoder(SAMPLE_RATE)
    encoder.header(MARTIN_1)
    samples = encoder.samples()

    bit_size = to_samples(VIS_BIT_SIZE, SAMPLE_RATE)
    vis_start = to_samples(0.640, SAMPLE_RATE)
    for i, bit in enumerate(vis_bits(MARTIN_1.vis_code)):
        window = samples[vis_start + i*bit_size:vis_start + (i + 1)*bit_size]
        assert peak_frequency(window, SAMPLE_RATE) == pytest.approx(1100 if bit else 1300, abs=10)


def line_samples(mode, sample_rate=SAMPLE_RATE):
    if mode.has_half_scan:
        parts = [mode.sync_pulse, mode.sync_porch, mode.scan_time]
        parts += [mode.sep_pulse, mode.sep_porch, mode.half_scan_time]*(mode.chan_count - 1)
    elif mode.has_start_sync:
        parts = [mode.sep_pulse, mode.scan_time]*2 + [mode.sync_pulse, mode.sync_porch, mode.scan_time]
    else:
        parts = [mode.sync_pulse, mode.sync_porch] + [mode.scan_time, mode.sep_pulse]*3
    return sum(to_samples(part, sample_rate) for part in parts)


@pytest.mark.parametrize("mode", [MARTIN_1, SCOTTIE_1, ROBOT_36, ROBOT_72])
def test_encode_length(mode):
    samples, sample_rate = encode_sstv(blank(mode), mode, SAMPLE_RATE)

    header = to_samples(0.610, SAMPLE_RATE) + 10*to_samples(VIS_BIT_SIZE, SAMPLE_RATE)
    if mode.has_start_sync:
        header += to_samples(mode.sync_pulse, SAMPLE_RATE)

    assert sample_rate == SAMPLE_RATE
    trailer = to_samples(END_TONE_TIME, SAMPLE_RATE)
    assert len(samples) == header + mode.line_count*line_samples(mode) + trailer


def test_transmission_ends_with_closing_tone():
    samples, _ = encode_sstv(blank(SCOTTIE_1), SCOTTIE_1, SAMPLE_RATE)
    tail = samples[-to_samples(END_TONE_TIME, SAMPLE_RATE):]

    assert peak_frequency(tail, SAMPLE_RATE) == pytest.approx(1500, abs=15)


def test_closing_tone_covers_final_pixel_windows():
    for mode in MODES:
        assert END_TONE_TIME >= mode.pixel_time*mode.window_factor/2


def test_robot_lines_match_nominal_line_time():
    assert line_samples(ROBOT_36) == to_samples(ROBOT_36.line_time, SAMPLE_RATE)
    assert line_samples(ROBOT_72) == to_samples(ROBOT_72.line_time, SAMPLE_RATE)


def test_robot_36_separator_alternates():
    encoder = SSTVEncoder(SAMPLE_RATE)
    channels = numpy.full((2, 320), 128, dtype=numpy.uint8)
    encoder.line(channels, ROBOT_36, 0)
    encoder.line(channels, ROBOT_36, 1)
    samples = encoder.samples()

    line = to_samples(ROBOT_36.line_time, SAMPLE_RATE)
    sep_start = to_samples(ROBOT_36.sync_pulse + ROBOT_36.sync_porch + ROBOT_36.scan_time, SAMPLE_RATE)
    sep_size = to_samples(ROBOT_36.sep_pulse, SAMPLE_RATE)

    even = samples[sep_start:sep_start + sep_size]
    odd = samples[line + sep_start:line + sep_start + sep_size]
    assert peak_frequency(even, SAMPLE_RATE) == pytest.approx(1500, abs=15)
    assert peak_frequency(odd, SAMPLE_RATE) == pytest.approx(2300, abs=15)


def test_encode_reports_progress():
    messages = []
    encode_sstv(blank(ROBOT_36), ROBOT_36, SAMPLE_RATE, progress=messages.append)

    assert messages[0] == "Encoding image to SSTV (Robot 36)..."
    assert messages[-1] == "Encoding image... line 240/240"


def test_encode_survives_failing_progress():
    def broken(message):
        raise IOError("closed")

    samples, _ = encode_sstv(blank(ROBOT_36), ROBOT_36, SAMPLE_RATE, progress=broken)
    assert len(samples) > 0


def test_encode_size_mismatch_warns():
    with pytest.warns(RuntimeWarning):
        samples, _ = encode_sstv(numpy.zeros((16, 16, 3), dtype=numpy.uint8), ROBOT_36, SAMPLE_RATE)

    reference, _ = encode_sstv(blank(ROBOT_36), ROBOT_36, SAMPLE_RATE)
    assert len(samples) == len(reference)


def test_every_mode_encodes():
    for mode in MODES:
        samples, _ = encode_sstv(blank(mode), mode, 11025)
        assert samples.ndim == 1
        assert numpy.abs(samples).max() <= AMPLITUDE
