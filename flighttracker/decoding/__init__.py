"""Frame decoding (pyModeS adapter) and message classification."""

from .classifier import classify
from .decoder import FrameDecodeError, decode_frame, parse_avr_line

__all__ = ["FrameDecodeError", "classify", "decode_frame", "parse_avr_line"]
