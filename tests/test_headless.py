"""
Tests for the headless render CLI.
"""
import pytest
from PIL import Image

from conftest import make_png
from curve_editor.headless import build_parser, main


@pytest.fixture
def photo(tmp_path):
    path = tmp_path / 'photo.png'
    path.write_bytes(make_png(400, 300))
    return path


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args(['a.png'])
        assert args.preset == 'png'
        assert args.canvas == (800.0, 600.0)
        assert args.text == []

    def test_lists_and_sizes(self):
        args = build_parser().parse_args(['a.png', '--canvas', '1024x768', '--crop', '1,2,3,4',
                                          '--corners', '0,10,20,30', '--text', 'A', '--text', 'B'])
        assert args.canvas == (1024.0, 768.0)
        assert args.crop == [1, 2, 3, 4]
        assert args.corners == [0, 10, 20, 30]
        assert args.text == ['A', 'B']

    @pytest.mark.parametrize("argv", [
        ['a.png', '--crop', '1,2,3'],
        ['a.png', '--canvas', 'big'],
        ['a.png', '--preset', 'gif'],
        ['a.png', '--scale', '0'],
        ['a.png', '--scale', '-1.5'],
    ])
    def test_bad_arguments_exit(self, argv):
        with pytest.raises(SystemExit):
            build_parser().parse_args(argv)


class TestRender:

    def test_renders_png_at_native_size(self, photo, tmp_path, capsys):
        out = tmp_path / 'out'
        assert main([str(photo), '-o', str(out), '--radius', '40', '--text', 'Hi']) == 0
        with Image.open(out / 'photo.png') as img:
            assert img.size == (400, 300)
            # Rounded corner is transparent
            assert img.getpixel((0, 0))[3] == 0
        assert "Rendered 1 image(s)" in capsys.readouterr().out

    def test_jpeg_preset(self, photo, tmp_path):
        out = tmp_path / 'out'
        assert main([str(photo), '-o', str(out), '-p', 'jpeg_high']) == 0
        with Image.open(out / 'photo.jpeg') as img:
            assert img.format == 'JPEG'

    def test_crop(self, photo, tmp_path):
        out = tmp_path / 'out'
        # Image drawn 800x600 on a 1000x750 canvas at (100, 75): crop its top-left quarter
        assert main([str(photo), '-o', str(out), '--canvas', '1000x750', '--crop', '100,75,400,300']) == 0
        with Image.open(out / 'photo.png') as img:
            assert img.size == (200, 150)

    def test_missing_input_fails(self, photo, tmp_path, capsys):
        out = tmp_path / 'out'
        assert main([str(photo), str(tmp_path / 'nope.png'), '-o', str(out)]) == 1
        captured = capsys.readouterr().out
        assert "[FAIL]" in captured and "file not found" in captured
        assert (out / 'photo.png').exists()

    def test_undecodable_input_fails(self, tmp_path, capsys):
        bad = tmp_path / 'bad.png'
        bad.write_bytes(b'nope')
        assert main([str(bad), '-o', str(tmp_path / 'out')]) == 1
        assert "Could not load image" in capsys.readouterr().out
