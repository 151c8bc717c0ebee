"""
Raster helpers for PDF image XObjects.

Pixel buffers coming out of the decode pipeline are turned into Pillow
images here, soft masks are attached as alpha and the result is encoded to
PNG.
"""

import io
from typing import Optional

from PIL import Image

# Color space tags grouped by the number of samples per pixel
RGB_SPACES = ("DeviceRGB", "ICCBased3", "CalRGB")
GRAY_SPACES = ("DeviceGray", "ICCBased1", "CalGray")
CMYK_SPACES = ("DeviceCMYK", "ICCBased4")

# Filters whose payload is an encoded image file rather than pixel samples
ENCODED_IMAGE_FILTERS = {
    "DCTDecode": "JPEG",
    "JPXDecode": "JPEG2000",
}


def channel_count(color_space: str) -> int:
    if color_space in GRAY_SPACES:
        return 1
    if color_space in CMYK_SPACES:
        return 4
    return 3


def cmyk_to_rgb(cmyk: bytes) -> bytes:
    """Convert packed 8-bit CMYK samples to packed RGB."""
    rgb = bytearray()
    for i in range(0, len(cmyk) - 3, 4):
        c, m, y, k = cmyk[i], cmyk[i + 1], cmyk[i + 2], cmyk[i + 3]
        white = 255 - k
        rgb.append((255 - c) * white // 255)
        rgb.append((255 - m) * white // 255)
        rgb.append((255 - y) * white // 255)
    return bytes(rgb)


def downsample_16_to_8(data: bytes) -> bytes:
    """Keep the high byte of every big-endian 16-bit sample."""
    return bytes(data[0::2])


def decode_raw_pixels(
    content: bytes, width: int, height: int, bits_per_component: int, color_space: str
) -> Optional[Image.Image]:
    """
    Build an image from uncompressed samples.

    Returns None when the buffer is shorter than the geometry requires.
    """
    channels = channel_count(color_space)
    bytes_per_sample = 2 if bits_per_component > 8 else 1
    expected = width * height * channels * bytes_per_sample
    if len(content) < expected:
        return None

    pixels = content[:expected]
    if bytes_per_sample == 2:
        pixels = downsample_16_to_8(pixels)

    if color_space in GRAY_SPACES:
        return Image.frombytes("L", (width, height), pixels)
    if color_space in CMYK_SPACES:
        return Image.frombytes("RGB", (width, height), cmyk_to_rgb(pixels))
    return Image.frombytes("RGB", (width, height), pixels)


def decode_encoded_image(content: bytes, filter_name: str) -> Image.Image:
    """Decode a JPEG or JPEG 2000 payload with Pillow."""
    image = Image.open(io.BytesIO(content), formats=[ENCODED_IMAGE_FILTERS[filter_name]])
    image.load()
    return image


def decode_to_image(
    content: bytes,
    width: int,
    height: int,
    bits_per_component: int,
    color_space: str,
    filter_name: str,
    smask: Optional[bytes] = None,
) -> Optional[Image.Image]:
    if filter_name in ENCODED_IMAGE_FILTERS:
        image = decode_encoded_image(content, filter_name)
    else:
        image = decode_raw_pixels(content, width, height, bits_per_component, color_space)
    if image is None:
        return None
    if smask is not None:
        image = apply_smask(image, smask, width, height)
    return image


def apply_smask(image: Image.Image, mask: bytes, width: int, height: int) -> Image.Image:
    """
    Attach a grayscale soft mask as the alpha channel.

    A mask shorter than ``width * height`` or an image whose decoded size
    differs from the declared one yields the plain RGB image.
    """
    rgb = image.convert("RGB")
    pixel_count = width * height
    if len(mask) < pixel_count or rgb.size != (width, height):
        return rgb
    rgb.putalpha(Image.frombytes("L", (width, height), bytes(mask[:pixel_count])))
    return rgb


def encode_png(image: Image.Image) -> bytes:
    if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
