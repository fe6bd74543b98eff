import sys
import time
import numpy
import numpy.fft

from sstv_modes import FREQ_BLACK, VIS_BIT_SIZE

######################################################################

FFT_SIZE = 4096

# Hz per luminance step across the 1500-2300 Hz video band
LUM_STEP = 3.1372549

######################################################################

def timed(message):
    def wrap(f):
        def wrapped_f(*args, **kwargs):
            sys.stdout.write(message + "\n")
            sys.stdout.flush()
            tic = time.time()
            rets = f(*args, **kwargs)
            toc = time.time()
            sys.stdout.write(" "*50 + "%.3f sec\n" % (toc-tic))
            return rets
        return wrapped_f
    return wrap

def report_progress(progress, message):
    if progress is None:
        return

    try:
        progress(message)
    except Exception as e:
        sys.stderr.write("Progress callback failed: {}\n".format(e))

######################################################################

def to_samples(seconds, sample_rate):
    # Durations are never negative, so this rounds half up
    return int(seconds * sample_rate + 0.5)

def transform_size(sample_rate):
    # Large enough for the longest analysis window (one VIS bit)
    longest = to_samples(VIS_BIT_SIZE, sample_rate)
    size = FFT_SIZE
    while size < longest:
        size *= 2
    return size

def barycentric_peak_interp(magnitudes, peaks):
    """
    Refine integer peak bins by the centre of mass of each peak and its two
    neighbours. Out of range neighbours take the peak's value, and a peak
    whose three bins sum to zero is returned unrefined.
    """
    rows = numpy.arange(len(peaks))
    last = magnitudes.shape[1] - 1

    y2 = magnitudes[rows, peaks]
    y1 = numpy.where(peaks > 0, magnitudes[rows, numpy.maximum(peaks - 1, 0)], y2)
    y3 = numpy.where(peaks < last, magnitudes[rows, numpy.minimum(peaks + 1, last)], y2)

    denom = y1 + y2 + y3
    with numpy.errstate(divide='ignore', invalid='ignore'):
        return numpy.where(denom == 0, peaks, peaks + (y3 - y1)/denom)

def peak_frequencies(windows, sample_rate, size=FFT_SIZE):
    """
    Dominant frequency in Hz of each row of a 2-D array of equal length
    sample windows. Each row is Hann tapered, zero padded to the transform
    size, and its magnitude peak refined by barycentric interpolation.
    """
    windows = numpy.atleast_2d(numpy.asarray(windows, dtype=numpy.float64))
    n = windows.shape[1]

    if n < 2:
        raise ValueError("Analysis window needs at least 2 samples, got {}".format(n))
    if n > size:
        raise ValueError("Analysis window of {} samples exceeds transform size {}".format(n, size))

    magnitudes = numpy.abs(numpy.fft.rfft(windows*numpy.hanning(n), n=size))
    peaks = numpy.argmax(magnitudes, axis=1)

    return barycentric_peak_interp(magnitudes, peaks) * sample_rate / size

def peak_frequency(window, sample_rate, size=FFT_SIZE):
    return float(peak_frequencies(window, sample_rate, size)[0])

######################################################################

def freq_to_lum(freq):
    lum = numpy.floor((numpy.asarray(freq) - FREQ_BLACK)/LUM_STEP + 0.5)
    return numpy.clip(lum, 0, 255).astype(numpy.uint8)

def lum_to_freq(lum):
    return FREQ_BLACK + numpy.asarray(lum, dtype=numpy.float64)*LUM_STEP
