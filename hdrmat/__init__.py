"""Image containers, matrix utilities, a simulated memory pool and a YUV420 JPEG encoder."""

__version__ = "0.1.0"

__all__ = [
    "int_image",
    "jpeg",
    "jpeg_core",
    "jpeg_tables",
    "matrix",
    "mempool",
    "short_image",
    "yuv420",
]