"""Drag context dataclass for canvas gestures.

Unified drag state management to replace multiple boolean flags.
"""

from dataclasses import dataclass, field


@dataclass
class DragContext:
	"""Unified drag state for one pointer or touch gesture.

	Baselines are captured on pointer-down; every move recomputes from them
	instead of accumulating per-frame deltas.
	"""
	operation: str  # 'pan', 'pinch', 'paint', or a crop handle name ('tl', ..., 'move', 'new')
	start_x: float = 0.0
	start_y: float = 0.0
	last_x: float = 0.0
	last_y: float = 0.0
	start_rect: object = None  # CropRect captured on pointer-down
	canvas_size: tuple = (0.0, 0.0)
	aspect_ratio: float = None  # Locked width / height, None when free
	moved: bool = False
	metadata: dict = field(default_factory=dict)
