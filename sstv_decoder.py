import collections
import numpy
from numpy.lib.stride_tricks import sliding_window_view

from sstv_blocks import freq_to_lum, peak_frequencies, report_progress, to_samples, transform_size
from sstv_image import draw_image
from sstv_modes import (
    BREAK_OFFSET, LEADER_OFFSET, VIS_START_OFFSET, HDR_SIZE, HDR_WINDOW_SIZE, VIS_BIT_SIZE,
    FREQ_LEADER, FREQ_BREAK,
    SSTVError, get_mode,
)

######################################################################

HDR_JUMP_SIZE = 0.002
HDR_TOLERANCE = 50

# Anything above this is past the 1200 Hz sync pulse
SYNC_THRESHOLD = 1350
SYNC_WINDOW_FACTOR = 1.4
SYNC_SEARCH_CHUNK = 256

######################################################################

class InputExhaustedError(SSTVError):
    pass

class HeaderNotFoundError(InputExhaustedError):
    pass

class NoSyncError(SSTVError):
    pass

class VISParityError(SSTVError):
    def __init__(self, bits, vis_code):
        self.bits = list(bits)
        self.vis_code = vis_code
        super().__init__("Error decoding VIS header (invalid parity bit, bits {}, VIS: {})".format(
            "".join(str(bit) for bit in self.bits), vis_code))

class SSTVImage(collections.namedtuple("SSTVImage", ["mode", "pixels", "lines_decoded"])):
    __slots__ = ()

    @property
    def complete(self):
        return self.lines_decoded == self.mode.line_count

######################################################################

def find_header(samples, sample_rate, progress=None):
    samples = numpy.asarray(samples, dtype=numpy.float64)
    size = transform_size(sample_rate)

    header_size = to_samples(HDR_SIZE, sample_rate)
    window_size = to_samples(HDR_WINDOW_SIZE, sample_rate)
    jump_size = to_samples(HDR_JUMP_SIZE, sample_rate)

    # Leader, break, leader, VIS start bit
    offsets = [
        0,
        to_samples(BREAK_OFFSET, sample_rate),
        to_samples(LEADER_OFFSET, sample_rate),
        to_samples(VIS_START_OFFSET, sample_rate),
    ]
    targets = numpy.array([FREQ_LEADER, FREQ_BREAK, FREQ_LEADER, FREQ_BREAK])

    for current_sample in range(0, len(samples) - header_size, jump_size):
        if current_sample % (jump_size*256) == 0:
            report_progress(progress, "Searching for calibration header... {:.1f}s".format(current_sample/sample_rate))

        windows = numpy.stack([samples[current_sample + offset:current_sample + offset + window_size] for offset in offsets])
        freqs = peak_frequencies(windows, sample_rate, size)

        if numpy.all(numpy.abs(freqs - targets) < HDR_TOLERANCE):
            report_progress(progress, "Searching for calibration header... Found!")
            return current_sample + header_size

    raise HeaderNotFoundError("Couldn't find SSTV header in the given audio")

def vis_bits_to_code(bits):
    # LSB is received first, the eighth bit is parity
    vis_code = 0
    for bit in bits[:7][::-1]:
        vis_code = (vis_code << 1) | bit
    return vis_code

def decode_vis(samples, sample_rate, vis_start):
    samples = numpy.asarray(samples, dtype=numpy.float64)
    bit_size = to_samples(VIS_BIT_SIZE, sample_rate)

    if vis_start + 8*bit_size > len(samples):
        raise InputExhaustedError("Reached end of audio before VIS code")

    windows = samples[vis_start:vis_start + 8*bit_size].reshape(8, bit_size)
    freqs = peak_frequencies(windows, sample_rate, transform_size(sample_rate))

    # Slice at 1200 Hz, below (1100 Hz) is a 1, above (1300 Hz) is a 0
    vis_bits = [int(freq <= FREQ_BREAK) for freq in freqs]
    vis_code = vis_bits_to_code(vis_bits)

    if sum(vis_bits) % 2 != 0:
        raise VISParityError(vis_bits, vis_code)

    return get_mode(vis_code)

def align_sync(samples, sample_rate, mode, align_start, start_of_sync=True):
    """
    Scan forward one sample at a time for the end of a sync pulse, the first
    window whose dominant frequency rises above the sync tone. Returns the
    offset of the pulse start, or of its end if start_of_sync is False.
    """
    samples = numpy.asarray(samples, dtype=numpy.float64)
    size = transform_size(sample_rate)

    sync_window = to_samples(mode.sync_pulse*SYNC_WINDOW_FACTOR, sample_rate)
    align_start = max(align_start, 0)
    align_stop = len(samples) - sync_window

    if align_stop <= align_start:
        raise NoSyncError("Reached end of audio searching for sync at sample {}".format(align_start))

    # Windows are analysed a chunk at a time, first hit wins
    for chunk_start in range(align_start, align_stop, SYNC_SEARCH_CHUNK):
        chunk_stop = min(chunk_start + SYNC_SEARCH_CHUNK, align_stop)
        windows = sliding_window_view(samples[chunk_start:chunk_stop + sync_window - 1], sync_window)

        above, = numpy.where(peak_frequencies(windows, sample_rate, size) > SYNC_THRESHOLD)
        if len(above) > 0:
            current_sample = chunk_start + int(above[0])
            break
    else:
        raise NoSyncError("No sync pulse found after sample {}".format(align_start))

    end_sync = current_sample + sync_window//2

    if start_of_sync:
        return end_sync - to_samples(mode.sync_pulse, sample_rate)
    else:
        return end_sync

def decode_image_data(samples, sample_rate, mode, image_start, progress=None):
    """
    Decode the luminance grid, shape (lines, channels, width), that follows
    the VIS code. Returns the grid and the number of completed lines; running
    out of audio leaves the remaining cells zero.
    """
    samples = numpy.asarray(samples, dtype=numpy.float64)
    size = transform_size(sample_rate)

    height = mode.line_count
    channels = mode.chan_count
    width = mode.line_width

    image_data = numpy.zeros((height, channels, width), dtype=numpy.uint8)

    seq_start = image_start
    if mode.has_start_sync:
        try:
            seq_start = align_sync(samples, sample_rate, mode, image_start, start_of_sync=False)
        except NoSyncError:
            report_progress(progress, "Reached end of audio before image data.")
            return image_data, 0

    for line in range(height):
        if mode.chan_sync > 0 and line == 0:
            # Channels ahead of the sync pulse belong to the first line, so
            # step back to where that line would have started
            sync_offset = mode.chan_offsets[mode.chan_sync]
            seq_start -= to_samples(sync_offset + mode.scan_time, sample_rate)

        for chan in range(channels):
            if chan == mode.chan_sync:
                if line > 0 or chan > 0:
                    seq_start += to_samples(mode.line_time, sample_rate)

                # Realign every line to stop timing drift accumulating
                try:
                    seq_start = align_sync(samples, sample_rate, mode, seq_start)
                except NoSyncError:
                    report_progress(progress, "Reached end of audio whilst decoding.")
                    return image_data, line

            pixel_time = mode.pixel_time
            if mode.has_half_scan and chan > 0:
                pixel_time = mode.half_pixel_time

            centre_window_time = (pixel_time*mode.window_factor)/2
            pixel_window = to_samples(centre_window_time*2, sample_rate)

            # Each window is centred on the leading edge of its pixel
            centres = mode.chan_offsets[chan] + numpy.arange(width)*pixel_time
            px_pos = numpy.floor(seq_start + (centres - centre_window_time)*sample_rate + 0.5).astype(int)

            fit = int(numpy.count_nonzero(px_pos + pixel_window <= len(samples)))
            if fit > 0:
                windows = samples[px_pos[:fit, None] + numpy.arange(pixel_window)]
                image_data[line, chan, :fit] = freq_to_lum(peak_frequencies(windows, sample_rate, size))

            if fit < width:
                report_progress(progress, "Reached end of audio whilst decoding.")
                return image_data, line

        report_progress(progress, "Decoding image... line {}/{}".format(line + 1, height))

    return image_data, height

######################################################################

def decode_sstv(samples, sample_rate, skip=0.0, progress=None):
    samples = numpy.asarray(samples, dtype=numpy.float64)

    if skip > 0.0:
        samples = samples[to_samples(skip, sample_rate):]

    header_end = find_header(samples, sample_rate, progress)

    mode = decode_vis(samples, sample_rate, header_end)
    report_progress(progress, "Detected SSTV mode {}".format(mode.name))

    # Eight VIS bits and the stop bit
    vis_end = header_end + to_samples(VIS_BIT_SIZE*9, sample_rate)

    image_data, lines_decoded = decode_image_data(samples, sample_rate, mode, vis_end, progress)

    return SSTVImage(mode, draw_image(image_data, mode, lines_decoded), lines_decoded)

decode = decode_sstv
