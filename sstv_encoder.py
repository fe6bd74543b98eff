import numpy

from sstv_blocks import lum_to_freq, report_progress, to_samples
from sstv_image import raster_to_channels
from sstv_modes import (
    VIS_BIT_SIZE,
    FREQ_LEADER, FREQ_BREAK, FREQ_SYNC, FREQ_VIS_BIT1, FREQ_VIS_BIT0, FREQ_BLACK, FREQ_WHITE,
)

######################################################################

DEFAULT_SAMPLE_RATE = 48000
AMPLITUDE = 0.5

# Closing tone after the last line, long enough to hold every mode's final
# pixel windows
END_TONE_TIME = 0.010

######################################################################

def vis_bits(vis_code):
    # Seven data bits LSB first, then even parity
    bits = [(vis_code >> i) & 1 for i in range(7)]
    bits.append(sum(bits) % 2)
    return bits

class SSTVEncoder:
    """
    One encoding session. Every tone is generated from a single phase
    accumulator which is never reset, so segment boundaries are phase
    continuous.
    """

    def __init__(self, sample_rate=DEFAULT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.phase = 0.0
        self.segments = []

    def _synthesize(self, freqs):
        phases = self.phase + numpy.cumsum((2*numpy.pi/self.sample_rate)*freqs)
        if len(phases) > 0:
            self.phase = phases[-1]
        self.segments.append(AMPLITUDE*numpy.sin(phases))

    def tone(self, freq, duration):
        self._synthesize(numpy.full(to_samples(duration, self.sample_rate), float(freq)))

    def scan(self, pixels, duration):
        # Each pixel holds for an equal share of the scan, the sample at a
        # boundary takes the preceding pixel
        total_samples = to_samples(duration, self.sample_rate)
        samples_per_pixel = (duration*self.sample_rate)/len(pixels)

        pixel_idx = numpy.floor(numpy.arange(total_samples)/samples_per_pixel).astype(int)
        pixel_idx = numpy.minimum(pixel_idx, len(pixels) - 1)

        self._synthesize(lum_to_freq(pixels)[pixel_idx])

    def samples(self):
        if not self.segments:
            return numpy.zeros(0)
        return numpy.concatenate(self.segments)

    ##################################################################

    def calibration(self):
        self.tone(FREQ_LEADER, 0.300)
        self.tone(FREQ_BREAK, 0.010)
        self.tone(FREQ_LEADER, 0.300)

    def vis(self, bits):
        # Start bit, data and parity bits, stop bit
        self.tone(FREQ_BREAK, VIS_BIT_SIZE)
        for bit in bits:
            self.tone(FREQ_VIS_BIT1 if bit else FREQ_VIS_BIT0, VIS_BIT_SIZE)
        self.tone(FREQ_BREAK, VIS_BIT_SIZE)

    def header(self, mode):
        self.calibration()
        self.vis(vis_bits(mode.vis_code))

    ##################################################################

    def martin_line(self, channels, mode):
        self.tone(FREQ_SYNC, mode.sync_pulse)
        self.tone(FREQ_BLACK, mode.sync_porch)

        for pixels in channels:
            self.scan(pixels, mode.scan_time)
            self.tone(FREQ_BLACK, mode.sep_pulse)

    def scottie_line(self, channels, mode):
        # Channels before the sync channel go out ahead of the sync pulse
        for pixels in channels[:mode.chan_sync]:
            self.tone(FREQ_BLACK, mode.sep_pulse)
            self.scan(pixels, mode.scan_time)

        self.tone(FREQ_SYNC, mode.sync_pulse)
        self.tone(FREQ_BLACK, mode.sync_porch)

        for pixels in channels[mode.chan_sync:]:
            self.scan(pixels, mode.scan_time)

    def robot_line(self, channels, mode, line):
        self.tone(FREQ_SYNC, mode.sync_pulse)
        self.tone(FREQ_BLACK, mode.sync_porch)
        self.scan(channels[0], mode.scan_time)

        for chan in range(1, len(channels)):
            # Separator is black ahead of V and white ahead of U
            if mode.has_alt_scan:
                carries_v = (line % 2 == 0)
            else:
                carries_v = (chan == 1)

            self.tone(FREQ_BLACK if carries_v else FREQ_WHITE, mode.sep_pulse)
            self.tone(FREQ_LEADER, mode.sep_porch)
            self.scan(channels[chan], mode.half_scan_time)

    def line(self, channels, mode, line):
        if mode.has_half_scan:
            self.robot_line(channels, mode, line)
        elif mode.has_start_sync:
            self.scottie_line(channels, mode)
        else:
            self.martin_line(channels, mode)

######################################################################

def encode_sstv(raster, mode, sample_rate=DEFAULT_SAMPLE_RATE, progress=None):
    channels = raster_to_channels(raster, mode)

    report_progress(progress, "Encoding image to SSTV ({})...".format(mode.name))

    encoder = SSTVEncoder(sample_rate)
    encoder.header(mode)

    if mode.has_start_sync:
        encoder.tone(FREQ_SYNC, mode.sync_pulse)

    for line in range(mode.line_count):
        encoder.line(channels[line], mode, line)
        report_progress(progress, "Encoding image... line {}/{}".format(line + 1, mode.line_count))

    encoder.tone(FREQ_BLACK, END_TONE_TIME)

    return (encoder.samples(), sample_rate)

encode = encode_sstv
