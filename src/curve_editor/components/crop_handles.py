"""Crop handle system - ABC-based handle architecture.

Each handle type is a class that knows:
- How to test if a pointer position hits it
- How to turn a drag into a new crop rectangle
- Which cursor to show while hovering it

Positions are canvas display pixels. Every drag result is clamped to the
minimum size and to the canvas before it is returned.
"""

from abc import ABC, abstractmethod
import math

from PyQt5.QtCore import Qt

from curve_editor.constants import CROP_HANDLE_HIT_RADIUS, CROP_MIN_SIZE
from curve_editor.models.crop import CropRect


class Handle(ABC):
	"""Abstract base class for crop handles."""

	name = None

	@abstractmethod
	def hit_test(self, px, py, rect) -> bool:
		"""Test if a pointer position hits this handle.

		Args:
			px, py: Pointer position in canvas pixels
			rect: Current CropRect
		"""
		pass

	@abstractmethod
	def drag(self, px, py, ctx) -> CropRect:
		"""Compute the crop rect for the current pointer position.

		Args:
			px, py: Current pointer position in canvas pixels
			ctx: DragContext with the start pointer and start rect

		Returns:
			CropRect: New rectangle (clamped)
		"""
		pass

	@abstractmethod
	def get_cursor(self):
		"""Qt cursor shape shown while hovering this handle."""
		pass


def _finish(x, y, w, h, ctx):
	rect = CropRect(x, y, w, h, drag_handle=ctx.operation,
	                straighten_angle=ctx.start_rect.straighten_angle if ctx.start_rect else 0.0)
	return rect.clamp(*ctx.canvas_size)


def resize_rect(ctx, px, py, edges):
	"""Move the named edges ('l', 'r', 't', 'b') of the start rect by the pointer delta.

	The opposite edges stay put. With an aspect lock the perpendicular
	dimension is recomputed from the locked ratio.
	"""
	start = ctx.start_rect
	dx = px - ctx.start_x
	dy = py - ctx.start_y
	left, top, right, bottom = start.x, start.y, start.right, start.bottom
	if 'l' in edges:
		left = min(left + dx, right - CROP_MIN_SIZE)
	if 'r' in edges:
		right = max(right + dx, left + CROP_MIN_SIZE)
	if 't' in edges:
		top = min(top + dy, bottom - CROP_MIN_SIZE)
	if 'b' in edges:
		bottom = max(bottom + dy, top + CROP_MIN_SIZE)

	ratio = ctx.aspect_ratio
	if ratio:
		horizontal = 'l' in edges or 'r' in edges
		vertical = 't' in edges or 'b' in edges
		if horizontal:
			# Width leads; height follows the ratio
			width = right - left
			height = width / ratio
			if height < CROP_MIN_SIZE:
				height = CROP_MIN_SIZE
				width = height * ratio
				if 'l' in edges:
					left = right - width
				else:
					right = left + width
			if vertical:
				if 't' in edges:
					top = bottom - height
				else:
					bottom = top + height
			else:
				center_y = (start.y + start.bottom) / 2
				top, bottom = center_y - height / 2, center_y + height / 2
		else:
			height = bottom - top
			width = max(height * ratio, CROP_MIN_SIZE)
			center_x = (start.x + start.right) / 2
			left, right = center_x - width / 2, center_x + width / 2

	return _finish(left, top, right - left, bottom - top, ctx)


class CornerHandle(Handle):
	"""Corner handle: resizes two edges at once."""

	def __init__(self, corner_type, hit_radius=CROP_HANDLE_HIT_RADIUS):
		"""
		Args:
			corner_type: 'tl', 'tr', 'bl', 'br'
			hit_radius: Pointer distance that still counts as a hit
		"""
		self.name = corner_type
		self.hit_radius = hit_radius

	def _get_pixel_pos(self, rect):
		x = rect.x if 'l' in self.name else rect.right
		y = rect.y if 't' in self.name else rect.bottom
		return x, y

	def hit_test(self, px, py, rect):
		hx, hy = self._get_pixel_pos(rect)
		return math.hypot(px - hx, py - hy) <= self.hit_radius

	def drag(self, px, py, ctx):
		return resize_rect(ctx, px, py, self.name)

	def get_cursor(self):
		if self.name in ('tl', 'br'):
			return Qt.SizeFDiagCursor
		return Qt.SizeBDiagCursor


class EdgeHandle(Handle):
	"""Edge midpoint handle: resizes a single edge."""

	def __init__(self, edge_type, hit_radius=CROP_HANDLE_HIT_RADIUS):
		"""
		Args:
			edge_type: 't', 'r', 'b', 'l'
			hit_radius: Pointer distance that still counts as a hit
		"""
		self.name = edge_type
		self.hit_radius = hit_radius

	def _get_pixel_pos(self, rect):
		cx, cy = rect.center
		return {
			't': (cx, rect.y),
			'b': (cx, rect.bottom),
			'l': (rect.x, cy),
			'r': (rect.right, cy),
		}[self.name]

	def hit_test(self, px, py, rect):
		hx, hy = self._get_pixel_pos(rect)
		return math.hypot(px - hx, py - hy) <= self.hit_radius

	def drag(self, px, py, ctx):
		return resize_rect(ctx, px, py, self.name)

	def get_cursor(self):
		return Qt.SizeVerCursor if self.name in ('t', 'b') else Qt.SizeHorCursor


class MoveHandle(Handle):
	"""Interior grab: translates the captured rect, kept inside the canvas."""

	name = 'move'

	def hit_test(self, px, py, rect):
		return rect.contains(px, py)

	def drag(self, px, py, ctx):
		start = ctx.start_rect
		return _finish(start.x + px - ctx.start_x, start.y + py - ctx.start_y, start.w, start.h, ctx)

	def get_cursor(self):
		return Qt.SizeAllCursor


class NewRectHandle(Handle):
	"""Anywhere else: draw a brand-new rectangle from the down-point."""

	name = 'new'

	def hit_test(self, px, py, rect):
		return True

	def drag(self, px, py, ctx):
		return _finish(min(ctx.start_x, px), min(ctx.start_y, py),
		               abs(px - ctx.start_x), abs(py - ctx.start_y), ctx)

	def get_cursor(self):
		return Qt.CrossCursor


class CropMode:
	"""Crop handles checked in priority order: corners, edges, move, new."""

	check_order = ['tl', 'tr', 'bl', 'br', 't', 'r', 'b', 'l', 'move', 'new']

	def __init__(self, hit_radius=CROP_HANDLE_HIT_RADIUS):
		self.handles = {
			'tl': CornerHandle('tl', hit_radius),
			'tr': CornerHandle('tr', hit_radius),
			'bl': CornerHandle('bl', hit_radius),
			'br': CornerHandle('br', hit_radius),
			't': EdgeHandle('t', hit_radius),
			'r': EdgeHandle('r', hit_radius),
			'b': EdgeHandle('b', hit_radius),
			'l': EdgeHandle('l', hit_radius),
			'move': MoveHandle(),
			'new': NewRectHandle(),
		}

	def get_handles(self):
		return self.handles

	def get_handle_at_pos(self, px, py, rect):
		"""Find which handle is at the pointer position (never None: 'new' always hits)."""
		for handle_type in self.check_order:
			if self.handles[handle_type].hit_test(px, py, rect):
				return self.handles[handle_type]
		return None
