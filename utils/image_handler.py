"""
Image Validation and Processing Module

Validates uploaded/fetched recipe images to prevent malicious file uploads.
Re-encodes images through Pillow to strip potential exploits and stores
them under a generated name in the uploads directory.
"""

import os
import uuid
from io import BytesIO

from PIL import Image


class ImageValidationError(Exception):
    """Raised when an image fails validation."""
    pass


# Allowed image formats (Pillow format names)
ALLOWED_FORMATS = {'JPEG', 'PNG', 'GIF', 'WEBP'}

# Maximum image dimensions (prevent decompression bombs)
MAX_WIDTH = 4096
MAX_HEIGHT = 4096

# Maximum file size (10MB)
MAX_FILE_SIZE = 10 * 1024 * 1024


def _read_bytes(image_data):
    if isinstance(image_data, bytes):
        content = image_data
    else:
        # File-like object (werkzeug FileStorage, BytesIO, open file)
        image_data.seek(0)
        content = image_data.read()
    if not content:
        raise ImageValidationError('Empty image file')
    if len(content) > MAX_FILE_SIZE:
        raise ImageValidationError(f'Image too large: {len(content)} bytes (max {MAX_FILE_SIZE})')
    return content


def process_image(image_data, max_width=2048, max_height=2048):
    """
    Validate an image and re-encode it as JPEG.

    Args:
        image_data: Raw image bytes or file-like object
        max_width: Width to shrink larger images to (default 2048)
        max_height: Height to shrink larger images to (default 2048)

    Returns:
        bytes: JPEG-encoded image

    Raises:
        ImageValidationError: If the image is invalid or potentially malicious
    """
    image_buffer = BytesIO(_read_bytes(image_data))

    try:
        img = Image.open(image_buffer)

        # Verify it's actually an image (detects corrupted/fake files)
        img.verify()

        # Re-open after verify (verify() leaves file in uncertain state)
        image_buffer.seek(0)
        img = Image.open(image_buffer)

        if img.format not in ALLOWED_FORMATS:
            raise ImageValidationError(
                f"Invalid image format: {img.format}. "
                f"Allowed formats: {', '.join(sorted(ALLOWED_FORMATS))}"
            )

        width, height = img.size
        if width > MAX_WIDTH or height > MAX_HEIGHT:
            raise ImageValidationError(
                f"Image dimensions too large: {width}x{height}. "
                f"Maximum: {MAX_WIDTH}x{MAX_HEIGHT}"
            )

        if width > max_width or height > max_height:
            img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)

        # Flatten alpha onto white; JPEG has no alpha channel
        if img.mode in ('RGBA', 'LA', 'P'):
            if img.mode != 'RGBA':
                img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        output = BytesIO()
        img.save(output, 'JPEG', quality=85, optimize=True)
        return output.getvalue()

    except ImageValidationError:
        raise
    except Image.DecompressionBombError:
        raise ImageValidationError('Image appears to be a decompression bomb (too large when decoded)')
    except Exception as e:
        raise ImageValidationError(f'Invalid or corrupted image: {str(e)}')


def save_image(image_data, dest_dir, prefix='recipe'):
    """
    Validate, re-encode and store an image under a generated filename.

    Args:
        image_data: Raw image bytes or file-like object
        dest_dir: Directory the JPEG is written to (created if missing)
        prefix: Filename prefix

    Returns:
        dict with filename, file_path, file_size and mime_type

    Raises:
        ImageValidationError: If the image is invalid
    """
    encoded = process_image(image_data)

    os.makedirs(dest_dir, exist_ok=True)
    filename = f'{prefix}-{uuid.uuid4().hex}.jpg'
    file_path = os.path.join(dest_dir, filename)
    with open(file_path, 'wb') as f:
        f.write(encoded)

    return {
        'filename': filename,
        'file_path': file_path,
        'file_size': len(encoded),
        'mime_type': 'image/jpeg',
    }


def remove_file(file_path):
    """Delete a stored file; returns False when it was already gone."""
    if not file_path:
        return False
    try:
        os.remove(file_path)
        return True
    except FileNotFoundError:
        return False
