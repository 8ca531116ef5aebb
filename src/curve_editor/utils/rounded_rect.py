"""Rounded rectangle path construction.

The path is four straight edges joined by four quadratic corners whose
control point is the sharp corner itself. Corners are flattened to line
segments so the polygon can be rasterised with ImageDraw.
"""
from curve_editor.constants import CORNER_SEGMENTS


def _quadratic(p0, p1, p2, segments):
	"""Flatten a quadratic Bezier, excluding the start point."""
	points = []
	for i in range(1, segments + 1):
		t = i / segments
		mt = 1 - t
		x = mt * mt * p0[0] + 2 * mt * t * p1[0] + t * t * p2[0]
		y = mt * mt * p0[1] + 2 * mt * t * p1[1] + t * t * p2[1]
		points.append((x, y))
	return points


def clamp_radii(w, h, radii):
	"""Clamp each corner radius to min(w, h) / 2."""
	max_radius = max(0.0, min(w, h) / 2)
	return {name: max(0.0, min(radii.get(name, 0.0), max_radius)) for name in ('tl', 'tr', 'bl', 'br')}


def rounded_rect_path(x, y, w, h, radii, segments=CORNER_SEGMENTS):
	"""Build the closed outline of a rounded rectangle.

	Args:
		x, y: Top-left corner
		w, h: Size
		radii: Dict with 'tl', 'tr', 'bl', 'br' pixel radii
		segments: Line segments per corner

	Returns:
		list of (x, y) tuples, clockwise from the top edge
	"""
	r = clamp_radii(w, h, radii)

	points = [(x + r['tl'], y), (x + w - r['tr'], y)]
	if r['tr'] > 0:
		points += _quadratic((x + w - r['tr'], y), (x + w, y), (x + w, y + r['tr']), segments)
	else:
		points.append((x + w, y))

	points.append((x + w, y + h - r['br']))
	if r['br'] > 0:
		points += _quadratic((x + w, y + h - r['br']), (x + w, y + h), (x + w - r['br'], y + h), segments)
	else:
		points.append((x + w, y + h))

	points.append((x + r['bl'], y + h))
	if r['bl'] > 0:
		points += _quadratic((x + r['bl'], y + h), (x, y + h), (x, y + h - r['bl']), segments)
	else:
		points.append((x, y + h))

	points.append((x, y + r['tl']))
	if r['tl'] > 0:
		points += _quadratic((x, y + r['tl']), (x, y), (x + r['tl'], y), segments)
		# Last point duplicates the first
		points.pop()
	else:
		points.append((x, y))

	return points
