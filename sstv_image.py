import warnings
import numpy
from PIL import Image

from sstv_modes import ColorFormat

######################################################################

def yuv_to_rgb(y, u, v):
    y = numpy.asarray(y, dtype=numpy.float64)
    u = numpy.asarray(u, dtype=numpy.float64) - 128
    v = numpy.asarray(v, dtype=numpy.float64) - 128

    r = y + 1.402*v
    g = y - 0.344136*u - 0.714136*v
    b = y + 1.772*u

    return numpy.stack([r, g, b], axis=-1)

def alternate_chroma_rows(line, height):
    """
    Rows supplying (U, V) for a line of an alternating chroma image. Even
    lines carry V and borrow U from the line below, odd lines carry U and
    borrow V from the line above. A row outside the image is None.
    """
    odd = line % 2
    u_row = line + 1 - odd
    v_row = line - odd

    if not 0 <= u_row < height:
        u_row = None
    if not 0 <= v_row < height:
        v_row = None

    return (u_row, v_row)

def draw_image(image_data, mode, lines_decoded=None):
    """
    Compose the (lines, channels, width) luminance grid into an RGB array.
    Rows at or past lines_decoded were never received, so they lend no
    chroma to their neighbours and carry none themselves.
    """
    grid = numpy.array(image_data, dtype=numpy.float64)
    height = grid.shape[0]
    if lines_decoded is None:
        lines_decoded = height

    if mode.color == ColorFormat.GBR:
        rgb = numpy.stack([grid[:, 2], grid[:, 0], grid[:, 1]], axis=-1)
    elif mode.color == ColorFormat.RGB:
        rgb = numpy.stack([grid[:, 0], grid[:, 1], grid[:, 2]], axis=-1)
    elif mode.color == ColorFormat.BW:
        rgb = numpy.stack([grid[:, 0]]*3, axis=-1)
    elif mode.has_alt_scan:
        u = numpy.full_like(grid[:, 0], 128)
        v = numpy.full_like(grid[:, 0], 128)

        for line in range(lines_decoded):
            u_row, v_row = alternate_chroma_rows(line, lines_decoded)
            if u_row is not None:
                u[line] = grid[u_row, 1]
            if v_row is not None:
                v[line] = grid[v_row, 1]

        rgb = yuv_to_rgb(grid[:, 0], u, v)
    else:
        grid[lines_decoded:, 1:] = 128
        rgb = yuv_to_rgb(grid[:, 0], grid[:, 2], grid[:, 1])

    return numpy.clip(numpy.floor(rgb + 0.5), 0, 255).astype(numpy.uint8)

######################################################################

def prepare_raster(raster, mode):
    if isinstance(raster, Image.Image):
        image = raster
    else:
        pixels = numpy.asarray(raster, dtype=numpy.uint8)
        if pixels.ndim == 3:
            # Drop alpha
            pixels = pixels[:, :, :3]
        image = Image.fromarray(pixels)

    image = image.convert("RGB")

    if image.size != (mode.line_width, mode.line_count):
        warnings.warn("Image dimensions ({}x{}) do not match {} ({}x{}), output may be distorted".format(
            image.size[0], image.size[1], mode.name, mode.line_width, mode.line_count), RuntimeWarning)
        # Crops, and pads with black beyond the image
        image = image.crop((0, 0, mode.line_width, mode.line_count))

    return image

def raster_to_channels(raster, mode):
    """Per line channel values in the order the mode scans them, shape (lines, channels, width)."""
    image = prepare_raster(raster, mode)
    rgb = numpy.asarray(image, dtype=numpy.uint8)

    if mode.color == ColorFormat.GBR:
        channels = [rgb[:, :, 1], rgb[:, :, 2], rgb[:, :, 0]]
    elif mode.color == ColorFormat.RGB:
        channels = [rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]]
    elif mode.color == ColorFormat.BW:
        channels = [numpy.asarray(image.convert("L"), dtype=numpy.uint8)]
    else:
        ycbcr = numpy.asarray(image.convert("YCbCr"), dtype=numpy.uint8)
        y, u, v = ycbcr[:, :, 0], ycbcr[:, :, 1], ycbcr[:, :, 2]

        if mode.has_alt_scan:
            even = (numpy.arange(mode.line_count) % 2 == 0)[:, None]
            channels = [y, numpy.where(even, v, u)]
        else:
            channels = [y, v, u]

    return numpy.stack(channels, axis=1)
