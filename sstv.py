import sys
import argparse
import numpy
import scipy.io.wavfile
import matplotlib.pyplot as plt
from PIL import Image

from sstv_blocks import timed
from sstv_decoder import decode_sstv
from sstv_encoder import DEFAULT_SAMPLE_RATE, encode_sstv
from sstv_modes import SSTVError, get_mode_by_name, mode_names

######################################################################

class UnsupportedFormatError(SSTVError):
    pass

def print_progress(message):
    sys.stdout.write("\r    {:<60}".format(message))
    sys.stdout.flush()

######################################################################

@timed("Reading wave file...")
def block_wave_file(path):
    (sample_rate, samples) = scipy.io.wavfile.read(path)

    if samples.dtype == numpy.int16:
        samples = samples/32768.0
    elif samples.dtype == numpy.uint8:
        samples = (samples - 128.0)/128.0
    else:
        raise UnsupportedFormatError("Unsupported sample format: {}. Only 8 and 16 bit WAV files are supported.".format(samples.dtype))

    # Down-mix to mono
    if samples.ndim > 1:
        samples = samples.mean(axis=1)

    print("    sample rate {}".format(sample_rate))

    return (sample_rate, samples)

@timed("Writing wave file...")
def block_write_wave_file(path, samples, sample_rate):
    samples = numpy.clip(samples, -1.0, 1.0)
    samples = numpy.where(samples < 0, samples*0x8000, samples*0x7FFF)
    scipy.io.wavfile.write(path, sample_rate, numpy.floor(samples + 0.5).astype(numpy.int16))

@timed("Reading image file...")
def block_image_file(path):
    return Image.open(path).convert("RGB")

@timed("Writing image file...")
def block_write_image_file(path, pixels):
    Image.fromarray(pixels, "RGB").save(path, "PNG")

@timed("Decoding SSTV...")
def block_decode_sstv(samples, sample_rate, skip):
    image = decode_sstv(samples, sample_rate, skip, progress=print_progress)
    sys.stdout.write("\n")
    return image

@timed("Encoding SSTV...")
def block_encode_sstv(image, mode, sample_rate):
    samples = encode_sstv(image, mode, sample_rate, progress=print_progress)
    sys.stdout.write("\n")
    return samples

def plot_image(pixels, title=""):
    plt.grid(False)
    plt.imshow(pixels)
    plt.title(title)
    plt.show()

######################################################################

def decode_file(args):
    (sample_rate, samples) = block_wave_file(args.decode)
    image = block_decode_sstv(samples, sample_rate, args.skip)

    print("    SSTV mode: {}".format(image.mode.name))
    if not image.complete:
        print("    Partial image: {} of {} lines".format(image.lines_decoded, image.mode.line_count))

    output = args.output or "result.png"
    block_write_image_file(output, image.pixels)
    print("Image saved to {}.".format(output))

    if args.plot:
        plot_image(image.pixels, image.mode.name)

def encode_file(args):
    mode = get_mode_by_name(args.mode)

    image = block_image_file(args.encode)
    (samples, sample_rate) = block_encode_sstv(image, mode, args.rate)

    output = args.output or "result.wav"
    block_write_wave_file(output, samples, sample_rate)
    print("Audio saved to {}.".format(output))

def main(argv=None):
    parser = argparse.ArgumentParser(prog="sstv", description="Decode and encode SSTV images")
    parser.add_argument("-d", "--decode", metavar="WAV", help="decode SSTV audio file (WAV format)")
    parser.add_argument("-e", "--encode", metavar="PNG", help="encode image file to SSTV audio")
    parser.add_argument("-o", "--output", help="output path (default: result.png or result.wav)")
    parser.add_argument("-m", "--mode", default="Martin 1", help="SSTV mode to encode with (default: Martin 1)")
    parser.add_argument("-s", "--skip", type=float, default=0.0, help="seconds into the audio to start decoding at")
    parser.add_argument("-r", "--rate", type=int, default=DEFAULT_SAMPLE_RATE, help="encoded sample rate in Hz")
    parser.add_argument("--list-modes", action="store_true", help="list supported SSTV modes")
    parser.add_argument("--plot", action="store_true", help="show the decoded image")
    args = parser.parse_args(argv)

    if args.list_modes:
        print("Supported modes: {}".format(", ".join(mode_names())))
        return 0

    if not args.decode and not args.encode:
        sys.stderr.write("Error: No input file specified. Use -d <file> or -e <file>\n")
        return 1

    try:
        if args.decode:
            decode_file(args)
        else:
            encode_file(args)
    except (SSTVError, OSError, ValueError) as e:
        sys.stderr.write("Error: {}\n".format(e))
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(main())
