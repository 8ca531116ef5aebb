"""Headless image renderer: CLI entry point.

Loads one or more images, applies transform / border radius / text / crop
options through an editing session and exports the flattened result at
native resolution.

Usage:
    curve-editor-render <input> [<input> ...] [-o OUTPUT_DIR] [--preset PRESET]

Examples:
    curve-editor-render photo.jpg --radius 25
    curve-editor-render photo.jpg --scale 1.2 --rotation 15 --text "Hello" -o renders/
    curve-editor-render a.png b.png --crop 100,80,400,300 --preset jpeg_high
"""

import sys
import os
import argparse
import asyncio
import logging

from curve_editor.constants import CORNER_NAMES, EXPORT_PRESETS
from curve_editor.models.crop import CropRect
from curve_editor.models.document import Viewport
from curve_editor.services.export_service import FileExportSink, export_filename


def _parse_numbers(text, count, name):
    """Parse 'a,b,c' into floats, requiring exactly count values."""
    try:
        values = [float(part) for part in text.split(',')]
    except ValueError:
        raise argparse.ArgumentTypeError(f"{name} must be {count} comma-separated numbers") from None
    if len(values) != count:
        raise argparse.ArgumentTypeError(f"{name} must be {count} comma-separated numbers")
    return values


def _parse_size(text):
    try:
        width, height = (float(part) for part in text.lower().split('x'))
    except ValueError:
        raise argparse.ArgumentTypeError("Canvas size must look like 800x600") from None
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("Canvas size must be positive")
    return width, height


def _parse_scale(text):
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("Scale must be greater than 0")
    return value


def build_parser():
    parser = argparse.ArgumentParser(
        description='Apply curve editor edits to images and export them (headless).',
    )
    parser.add_argument('inputs', nargs='+', help='Image files to render.')
    parser.add_argument('-o', '--output', default='./output',
                        help='Output directory (default: ./output).')
    parser.add_argument('-p', '--preset', default='png', choices=sorted(EXPORT_PRESETS),
                        help='Export preset (default: png).')
    parser.add_argument('--canvas', type=_parse_size, default=(800.0, 600.0),
                        help='Virtual canvas size the edit coordinates refer to (default: 800x600).')
    parser.add_argument('--x', type=float, default=0.0, help='Pan offset x in canvas pixels.')
    parser.add_argument('--y', type=float, default=0.0, help='Pan offset y in canvas pixels.')
    parser.add_argument('--scale', type=_parse_scale, default=1.0, help='Zoom factor.')
    parser.add_argument('--rotation', type=float, default=0.0, help='Rotation in degrees.')
    parser.add_argument('--radius', type=float, default=0.0, help='Border radius percentage (0-100).')
    parser.add_argument('--corners', type=lambda t: _parse_numbers(t, 4, 'Corners'),
                        help='Per-corner radius percentages tl,tr,bl,br (advanced mode).')
    parser.add_argument('--text', action='append', default=[], help='Add a text layer (repeatable).')
    parser.add_argument('--text-pos', type=lambda t: _parse_numbers(t, 2, 'Text position'),
                        help='Text position x,y in canvas pixels (default: canvas centre).')
    parser.add_argument('--text-size', type=float, default=None, help='Text size.')
    parser.add_argument('--text-color', default=None, help='Text colour, e.g. #ff0000.')
    parser.add_argument('--crop', type=lambda t: _parse_numbers(t, 4, 'Crop'),
                        help='Crop rect x,y,w,h in canvas pixels.')
    parser.add_argument('--straighten', type=float, default=0.0, help='Crop straighten angle in degrees.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging.')
    return parser


async def render_file(session, path, args, sink):
    """Import one file, apply the CLI edits and export it. Returns the written path or None."""
    with open(path, 'rb') as f:
        data = f.read()
    if not await session.import_image(data):
        return None

    if args.crop:
        session.start_crop()
        x, y, w, h = args.crop
        session.document.crop = CropRect(x, y, w, h, straighten_angle=args.straighten).clamp(
            *session.document.viewport.size)
        if not await session.apply_crop():
            return None

    doc = session.document
    doc.transform.x = args.x
    doc.transform.y = args.y
    doc.transform.scale = args.scale
    doc.transform.rotation = args.rotation
    if args.corners:
        session.set_advanced_radius(True)
        for name, value in zip(CORNER_NAMES, args.corners):
            session.set_corner_radius(name, value)
    session.set_border_radius(args.radius)

    for text in args.text:
        layer_id = session.add_text_layer()
        changes = {'text': text}
        if args.text_pos:
            changes['x'], changes['y'] = args.text_pos
        if args.text_size is not None:
            changes['size'] = args.text_size
        if args.text_color:
            changes['color'] = args.text_color
        session.update_layer(layer_id, **changes)
    session.document.layers.start_editing_text(None)

    stem = os.path.splitext(os.path.basename(path))[0]
    ext = os.path.splitext(export_filename(args.preset))[1]
    exported = await session.export(args.preset, sink=_NamedSink(sink, f"{stem}{ext}"))
    return sink.saved[-1] if exported is not None else None


class _NamedSink:
    """Saves under a fixed filename instead of the suggested one."""

    def __init__(self, sink, filename):
        self.sink = sink
        self.filename = filename

    def save(self, data, filename):
        return self.sink.save(data, self.filename)


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    from curve_editor.main.session import EditorSession

    output_dir = os.path.abspath(args.output)
    sink = FileExportSink(output_dir)

    async def run():
        rendered = 0
        failed = 0
        for path in args.inputs:
            if not os.path.isfile(path):
                failed += 1
                print(f"  [FAIL] {path}: file not found")
                continue
            session = EditorSession(Viewport(*args.canvas))
            out_path = await render_file(session, path, args, sink)
            if out_path is None:
                failed += 1
                reason = session.notifier.messages[-1] if session.notifier.messages else "render failed"
                print(f"  [FAIL] {path}: {reason}")
            else:
                rendered += 1
                print(f"  [{rendered}/{len(args.inputs)}] {os.path.basename(out_path)}")
        return rendered, failed

    rendered, failed = asyncio.run(run())

    print(f"\nDone. Rendered {rendered} image(s) to {output_dir}/")
    if failed:
        print(f"  ({failed} failed)")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
