"""
Horizontal mirror transform.
"""

from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from nft_flipper.errors import StorageIOError
from nft_flipper.storage import atomic_writer


def mirror(image: Image.Image) -> Image.Image:
    """Reverse every pixel row. Mode, size and palette are unchanged."""
    return ImageOps.mirror(image)


def flip_file(src: Path, dest: Path) -> None:
    """Mirror the image at ``src`` and write it atomically to ``dest`` in the same format."""
    try:
        with Image.open(src) as image:
            image_format = image.format or "PNG"
            flipped = mirror(image)
    except FileNotFoundError as e:
        raise StorageIOError(f"Missing image {src}") from e
    except (UnidentifiedImageError, OSError) as e:
        raise StorageIOError(f"Could not read image {src}: {e}") from e

    with atomic_writer(dest) as f:
        flipped.save(f, format=image_format)
