"""Coordinate transformation utilities for canvas rendering.

Provides conversion between different coordinate systems:
- Screen / pointer pixels (window space)
- Canvas display pixels (top-left origin, density independent)
- Image pixels (native resolution, top-left origin)

The forward chain is image -> centred local -> fit scale -> transform
scale -> rotation -> translation to canvas centre + pan. The inverse
undoes each step in reverse order and is exact, which mask painting
relies on.
"""
import math

from curve_editor.constants import FIT_MARGIN
from curve_editor.models.transform import Vec2


def fit_scale(canvas_w, canvas_h, img_w, img_h, margin=FIT_MARGIN):
	"""Scale that fits an image inside the canvas with a margin.

	Args:
		canvas_w, canvas_h: Canvas display dimensions
		img_w, img_h: Native image dimensions
		margin: Fraction of the canvas the image may fill (default 0.8)

	Returns:
		float: min(canvas_w / img_w, canvas_h / img_h) * margin
	"""
	if img_w <= 0 or img_h <= 0:
		raise ValueError(f"Image dimensions must be positive, got {img_w}x{img_h}")
	return min(canvas_w / img_w, canvas_h / img_h) * margin


def draw_size(canvas_w, canvas_h, img_w, img_h):
	"""Displayed image size at transform scale 1 (fit scale applied)."""
	factor = fit_scale(canvas_w, canvas_h, img_w, img_h)
	return img_w * factor, img_h * factor


def rotate_point(x, y, degrees):
	"""Rotate (x, y) about the origin by degrees (standard 2D rotation matrix)."""
	radians = math.radians(degrees)
	cos_a = math.cos(radians)
	sin_a = math.sin(radians)
	return x * cos_a - y * sin_a, x * sin_a + y * cos_a


def screen_to_canvas(screen_pos, canvas_origin):
	"""Convert a pointer position to canvas display coordinates.

	Args:
		screen_pos: Vec2 pointer position in window space
		canvas_origin: Vec2 top-left of the canvas in window space

	Returns:
		Vec2 in canvas display space
	"""
	return Vec2(screen_pos.x - canvas_origin.x, screen_pos.y - canvas_origin.y)


def image_to_canvas(image_pos, transform, canvas_size, image_size):
	"""Map an image pixel to canvas display space (forward mapping).

	Args:
		image_pos: Vec2 in native image pixels (top-left origin)
		transform: Transform (pan, scale, rotation)
		canvas_size: (width, height) of the canvas display
		image_size: (width, height) of the native image

	Returns:
		Vec2 in canvas display space
	"""
	canvas_w, canvas_h = canvas_size
	img_w, img_h = image_size
	factor = fit_scale(canvas_w, canvas_h, img_w, img_h)

	# Local space: origin at the image centre, fit scale applied
	local_x = (image_pos.x - img_w / 2) * factor
	local_y = (image_pos.y - img_h / 2) * factor

	# Transform scale, then rotation
	scaled_x = local_x * transform.scale
	scaled_y = local_y * transform.scale
	rot_x, rot_y = rotate_point(scaled_x, scaled_y, transform.rotation)

	return Vec2(canvas_w / 2 + transform.x + rot_x, canvas_h / 2 + transform.y + rot_y)


def canvas_to_image(canvas_pos, transform, canvas_size, image_size):
	"""Map a canvas display point to native image pixels (inverse mapping).

	Args:
		canvas_pos: Vec2 in canvas display space
		transform: Transform (pan, scale, rotation)
		canvas_size: (width, height) of the canvas display
		image_size: (width, height) of the native image

	Returns:
		Vec2 in native image pixels (may lie outside the image)

	Raises:
		ValueError: If transform.scale is not positive
	"""
	if transform.scale <= 0:
		raise ValueError(f"Transform scale must be positive, got {transform.scale}")

	canvas_w, canvas_h = canvas_size
	img_w, img_h = image_size
	factor = fit_scale(canvas_w, canvas_h, img_w, img_h)

	# Remove translation (canvas centre + pan)
	local_x = canvas_pos.x - canvas_w / 2 - transform.x
	local_y = canvas_pos.y - canvas_h / 2 - transform.y

	# Undo rotation, then scale
	unrot_x, unrot_y = rotate_point(local_x, local_y, -transform.rotation)
	unscaled_x = unrot_x / transform.scale
	unscaled_y = unrot_y / transform.scale

	# Undo fit scale and move origin back to the top-left corner
	return Vec2(unscaled_x / factor + img_w / 2, unscaled_y / factor + img_h / 2)


def affine_coefficients(center_x, center_y, scale, rotation, src_offset_x, src_offset_y):
	"""Inverse affine coefficients for Pillow's Image.transform(AFFINE).

	The forward map places source pixel q at
	centre + R(rotation) * scale * (q - src_offset). Pillow needs the map
	from output pixel p back to q, i.e. q = R(-rotation) (p - centre) / scale
	+ src_offset.

	Returns:
		tuple: (a, b, c, d, e, f) with q.x = a*p.x + b*p.y + c and
		q.y = d*p.x + e*p.y + f
	"""
	if scale <= 0:
		raise ValueError(f"Scale must be positive, got {scale}")
	radians = math.radians(rotation)
	cos_a = math.cos(radians) / scale
	sin_a = math.sin(radians) / scale

	a, b = cos_a, sin_a
	d, e = -sin_a, cos_a
	c = src_offset_x - (a * center_x + b * center_y)
	f = src_offset_y - (d * center_x + e * center_y)
	return (a, b, c, d, e, f)
