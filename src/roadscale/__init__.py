"""roadscale: pixel -> real-world calibration for video feeds, with adaptive performance control."""

__version__ = "0.1.0"
