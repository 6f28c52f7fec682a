"""Sub-GHz key fob protocol decoders and encoders, capture history and radio state control."""

__version__ = "0.1.0"

__all__ = [
    "base",
    "vw",
    "history",
    "radio",
    "scher_khan",
    "subaru",
    "subaru_encoder",
    "suzuki",
]