"""
Tests for image validation, re-encoding and storage.
"""
import io

import pytest
from PIL import Image

from utils.image_handler import ImageValidationError, process_image, remove_file, save_image

from conftest import make_image_bytes


def open_jpeg(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestProcessImage:
    @pytest.mark.parametrize('fmt', ['PNG', 'JPEG', 'GIF', 'WEBP'])
    def test_reencodes_as_jpeg(self, fmt):
        img = open_jpeg(process_image(make_image_bytes(fmt)))
        assert img.format == 'JPEG'
        assert img.mode == 'RGB'

    def test_accepts_file_objects(self):
        assert open_jpeg(process_image(io.BytesIO(make_image_bytes()))).size == (40, 30)

    def test_shrinks_large_images(self):
        img = open_jpeg(process_image(make_image_bytes(size=(3000, 1500)), max_width=2048, max_height=2048))
        assert img.size == (2048, 1024)

    def test_flattens_transparency(self):
        buffer = io.BytesIO()
        Image.new('RGBA', (10, 10), (0, 0, 0, 0)).save(buffer, 'PNG')
        img = open_jpeg(process_image(buffer.getvalue()))
        r, g, b = img.getpixel((5, 5))
        assert min(r, g, b) > 240

    def test_rejects_oversized_dimensions(self):
        with pytest.raises(ImageValidationError, match='dimensions too large'):
            process_image(make_image_bytes(size=(5000, 10)))

    def test_rejects_disallowed_format(self):
        with pytest.raises(ImageValidationError, match='Invalid image format: BMP'):
            process_image(make_image_bytes('BMP'))

    def test_rejects_garbage(self):
        with pytest.raises(ImageValidationError, match='Invalid or corrupted image'):
            process_image(b'definitely not an image')

    def test_rejects_empty(self):
        with pytest.raises(ImageValidationError, match='Empty image file'):
            process_image(b'')


class TestSaveImage:
    def test_writes_file(self, tmp_path):
        stored = save_image(make_image_bytes(), str(tmp_path / 'images'), prefix='recipe')
        assert stored['filename'].startswith('recipe-')
        assert stored['filename'].endswith('.jpg')
        assert stored['mime_type'] == 'image/jpeg'
        assert (tmp_path / 'images' / stored['filename']).stat().st_size == stored['file_size']

    def test_unique_names(self, tmp_path):
        first = save_image(make_image_bytes(), str(tmp_path))
        second = save_image(make_image_bytes(), str(tmp_path))
        assert first['filename'] != second['filename']

    def test_nothing_written_for_bad_input(self, tmp_path):
        with pytest.raises(ImageValidationError):
            save_image(b'nope', str(tmp_path / 'images'))
        assert not (tmp_path / 'images').exists()


class TestRemoveFile:
    def test_remove(self, tmp_path):
        path = tmp_path / 'x.jpg'
        path.write_bytes(b'1')
        assert remove_file(str(path)) is True
        assert not path.exists()

    def test_already_gone(self, tmp_path):
        assert remove_file(str(tmp_path / 'missing.jpg')) is False
        assert remove_file(None) is False
