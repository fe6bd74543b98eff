import collections
import enum

######################################################################

# Calibration header layout (seconds from the start of the first leader)
BREAK_OFFSET = 0.300
LEADER_OFFSET = 0.010 + BREAK_OFFSET
VIS_START_OFFSET = 0.300 + LEADER_OFFSET

HDR_SIZE = 0.030 + VIS_START_OFFSET
HDR_WINDOW_SIZE = 0.010

VIS_BIT_SIZE = 0.030

# Tones (Hz)
FREQ_LEADER = 1900
FREQ_BREAK = 1200
FREQ_SYNC = 1200
FREQ_VIS_BIT1 = 1100
FREQ_VIS_BIT0 = 1300
FREQ_BLACK = 1500
FREQ_WHITE = 2300

######################################################################

class ColorFormat(enum.Enum):
    RGB = 1
    GBR = 2
    YUV = 3
    BW = 4

SSTVMode = collections.namedtuple("SSTVMode", [
    "name", "vis_code", "color",
    "line_width", "line_count",
    "scan_time", "half_scan_time",
    "sync_pulse", "sync_porch", "sep_pulse", "sep_porch",
    "chan_count", "chan_sync", "chan_time", "half_chan_time", "chan_offsets",
    "line_time", "pixel_time", "half_pixel_time",
    "window_factor",
    "has_start_sync", "has_half_scan", "has_alt_scan",
])

class SSTVError(Exception):
    pass

class UnsupportedModeError(SSTVError):
    def __init__(self, vis_code=None, name=None):
        self.vis_code = vis_code
        self.name = name

        if name is not None:
            reason = "Unsupported SSTV mode '{}'".format(name)
        else:
            reason = "SSTV mode is unsupported (VIS: {})".format(vis_code)

        super().__init__("{}. Supported modes: {}".format(reason, ", ".join(mode_names())))

######################################################################

def channel_time(sep_pulse, scan_time):
    return sep_pulse + scan_time

def martin(name, vis_code, scan_time, window_factor,
           sync_pulse=0.004862, sync_porch=0.000572, sep_pulse=0.000572):
    # Sync, porch, then G, B, R each followed by a separator
    chan_time = channel_time(sep_pulse, scan_time)

    offsets = [sync_pulse + sync_porch]
    offsets.append(offsets[0] + chan_time)
    offsets.append(offsets[1] + chan_time)

    return SSTVMode(
        name=name, vis_code=vis_code, color=ColorFormat.GBR,
        line_width=320, line_count=256,
        scan_time=scan_time, half_scan_time=None,
        sync_pulse=sync_pulse, sync_porch=sync_porch,
        sep_pulse=sep_pulse, sep_porch=None,
        chan_count=3, chan_sync=0,
        chan_time=chan_time, half_chan_time=None,
        chan_offsets=tuple(offsets),
        line_time=sync_pulse + sync_porch + 3*chan_time,
        pixel_time=scan_time/320, half_pixel_time=None,
        window_factor=window_factor,
        has_start_sync=False, has_half_scan=False, has_alt_scan=False,
    )

def scottie(name, vis_code, scan_time, window_factor,
            sync_pulse=0.009000, sync_porch=0.001500, sep_pulse=0.001500):
    # Sync sits before the red scan, so a line is measured from that sync:
    # R, then G and B which are sent before the next sync
    chan_time = channel_time(sep_pulse, scan_time)

    offsets = [sync_pulse + sync_porch + chan_time]
    offsets.append(offsets[0] + chan_time)
    offsets.append(sync_pulse + sync_porch)

    return SSTVMode(
        name=name, vis_code=vis_code, color=ColorFormat.GBR,
        line_width=320, line_count=256,
        scan_time=scan_time, half_scan_time=None,
        sync_pulse=sync_pulse, sync_porch=sync_porch,
        sep_pulse=sep_pulse, sep_porch=None,
        chan_count=3, chan_sync=2,
        chan_time=chan_time, half_chan_time=None,
        chan_offsets=tuple(offsets),
        line_time=sync_pulse + 3*chan_time,
        pixel_time=scan_time/320, half_pixel_time=None,
        window_factor=window_factor,
        has_start_sync=True, has_half_scan=False, has_alt_scan=False,
    )

def robot(name, vis_code, chan_count, scan_time, half_scan_time, window_factor,
          sync_pulse=0.009000, sync_porch=0.003000, sep_pulse=0.004500, sep_porch=0.001500):
    # Full-length luma scan followed by half-length chroma scans
    chan_time = channel_time(sep_pulse, scan_time)
    half_chan_time = channel_time(sep_pulse, half_scan_time)

    offsets = [sync_pulse + sync_porch]
    offsets.append(offsets[0] + chan_time + sep_porch)
    if chan_count == 3:
        offsets.append(offsets[1] + half_chan_time + sep_porch)

    return SSTVMode(
        name=name, vis_code=vis_code, color=ColorFormat.YUV,
        line_width=320, line_count=240,
        scan_time=scan_time, half_scan_time=half_scan_time,
        sync_pulse=sync_pulse, sync_porch=sync_porch,
        sep_pulse=sep_pulse, sep_porch=sep_porch,
        chan_count=chan_count, chan_sync=0,
        chan_time=chan_time, half_chan_time=half_chan_time,
        chan_offsets=tuple(offsets),
        line_time=offsets[-1] + half_scan_time,
        pixel_time=scan_time/320, half_pixel_time=half_scan_time/320,
        window_factor=window_factor,
        has_start_sync=False, has_half_scan=True,
        # Two-channel layout alternates V and U on successive lines
        has_alt_scan=(chan_count == 2),
    )

######################################################################

MARTIN_1 = martin("Martin 1", 44, 0.146432, 2.34)
MARTIN_2 = martin("Martin 2", 40, 0.073216, 4.68)
SCOTTIE_1 = scottie("Scottie 1", 60, 0.138240, 2.48)
SCOTTIE_2 = scottie("Scottie 2", 56, 0.088064, 3.82)
SCOTTIE_DX = scottie("Scottie DX", 76, 0.345600, 0.98)
ROBOT_36 = robot("Robot 36", 8, 2, 0.088000, 0.044000, 7.70)
ROBOT_72 = robot("Robot 72", 12, 3, 0.138000, 0.069000, 4.88)

MODES = (MARTIN_1, MARTIN_2, SCOTTIE_1, SCOTTIE_2, SCOTTIE_DX, ROBOT_36, ROBOT_72)

VIS_MAP = {mode.vis_code: mode for mode in MODES}

######################################################################

def mode_names():
    return [mode.name for mode in MODES]

def get_mode(vis_code):
    try:
        return VIS_MAP[vis_code]
    except KeyError:
        raise UnsupportedModeError(vis_code=vis_code) from None

def get_mode_by_name(name):
    for mode in MODES:
        if mode.name.lower() == name.strip().lower():
            return mode

    raise UnsupportedModeError(name=name)
