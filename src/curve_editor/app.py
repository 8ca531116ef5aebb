import sys
import os
import asyncio
import logging

# Configure logging
logging.basicConfig(
    level=logging.WARNING,  # Only show warnings and errors
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)  # Output to console
    ]
)

# PyQt5 import/s
from PyQt5 import QtWidgets
from PyQt5.QtWidgets import QMainWindow, QFileDialog, QInputDialog, QLabel, QActionGroup
from PyQt5.QtCore import Qt, QTimer
from PyQt5.QtGui import QPalette, QColor

from curve_editor.components.canvas_widget import CurveCanvas
from curve_editor.constants import EXPORT_PRESETS, UPSCALE_FACTORS, DEFAULT_EXPAND_FACTOR
from curve_editor.main.session import EditorSession
from curve_editor.models.document import Viewport

IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.webp *.bmp *.gif);;All Files (*)"

# Interval of the asyncio pump (ms)
PUMP_INTERVAL_MS = 10

CROP_RATIOS = [
    ("Free", None),
    ("1:1", 1.0),
    ("4:3", 4 / 3),
    ("3:4", 3 / 4),
    ("16:9", 16 / 9),
    ("9:16", 9 / 16),
]


class AsyncPump:
    """Steps an asyncio loop from the Qt event loop so tasks run on the GUI thread"""

    def __init__(self, loop, interval_ms=PUMP_INTERVAL_MS):
        self.loop = loop
        self.timer = QTimer()
        self.timer.timeout.connect(self._step)
        self.timer.start(interval_ms)

    def _step(self):
        # A modal dialog opened from a task re-enters the Qt loop
        if self.loop.is_running():
            return
        self.loop.call_soon(self.loop.stop)
        self.loop.run_forever()

    def stop(self):
        self.timer.stop()


class CurveEditorWindow(QMainWindow):
    def __init__(self, loop):
        super().__init__()
        self.setWindowTitle("Curve Editor")
        self.resize(1024, 768)

        self.session = EditorSession(
            Viewport(800, 600),
            prompt_provider=self._ask_fill_prompt,
            loop=loop,
            load_config=True,
        )
        self.session.history_manager.add_listener(self._on_history_changed)

        self.canvas = CurveCanvas(self.session, self)
        self.setCentralWidget(self.canvas)

        self.status_label = QLabel("Ready")
        self.statusBar().addWidget(self.status_label, 1)

        self._create_menu_bar()

        # Busy state and status text change from tasks; poll them
        self.status_timer = QTimer(self)
        self.status_timer.timeout.connect(self._refresh_status)
        self.status_timer.start(100)

    # ============= Menu =============

    def _create_menu_bar(self):
        menubar = self.menuBar()

        # File Menu
        file_menu = menubar.addMenu("&File")

        open_action = file_menu.addAction("&Open Image...")
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self.open_image)

        self.recent_menu = file_menu.addMenu("Recent Files")
        self._update_recent_files_menu()

        file_menu.addSeparator()

        export_menu = file_menu.addMenu("&Export")
        for preset in EXPORT_PRESETS:
            action = export_menu.addAction(preset.replace('_', ' ').upper())
            action.triggered.connect(lambda checked, p=preset: self.export_image(p))

        file_menu.addSeparator()

        exit_action = file_menu.addAction("E&xit")
        exit_action.setShortcut("Alt+F4")
        exit_action.triggered.connect(self.close)

        # Edit Menu
        edit_menu = menubar.addMenu("&Edit")

        self.undo_action = edit_menu.addAction("&Undo")
        self.undo_action.setShortcut("Ctrl+Z")
        self.undo_action.setEnabled(False)
        self.undo_action.triggered.connect(lambda: self._run(self.session.undo()))

        self.redo_action = edit_menu.addAction("&Redo")
        self.redo_action.setShortcut("Ctrl+Y")
        self.redo_action.setEnabled(False)
        self.redo_action.triggered.connect(lambda: self._run(self.session.redo()))

        edit_menu.addSeparator()

        radius_action = edit_menu.addAction("Border &Radius...")
        radius_action.triggered.connect(self.edit_border_radius)

        # Layers Menu
        layers_menu = menubar.addMenu("&Layers")

        add_image_action = layers_menu.addAction("Add &Image Layer...")
        add_image_action.triggered.connect(self.add_image_layer)

        add_text_action = layers_menu.addAction("Add &Text Layer...")
        add_text_action.setShortcut("T")
        add_text_action.triggered.connect(self.add_text_layer)

        duplicate_action = layers_menu.addAction("&Duplicate Layer")
        duplicate_action.setShortcut("Ctrl+D")
        duplicate_action.triggered.connect(self._with_selected(self.session.duplicate_layer))

        delete_action = layers_menu.addAction("De&lete Layer")
        delete_action.setShortcut("Delete")
        delete_action.triggered.connect(self._with_selected(self.session.delete_layer))

        layers_menu.addSeparator()

        up_action = layers_menu.addAction("Move &Up")
        up_action.triggered.connect(self._with_selected(lambda lid: self.session.reorder_layer(lid, 'up')))
        down_action = layers_menu.addAction("Move Do&wn")
        down_action.triggered.connect(self._with_selected(lambda lid: self.session.reorder_layer(lid, 'down')))

        layers_menu.addSeparator()

        lock_action = layers_menu.addAction("Toggle &Lock")
        lock_action.triggered.connect(self._with_selected(self.session.toggle_layer_lock))
        visibility_action = layers_menu.addAction("Toggle &Visibility")
        visibility_action.triggered.connect(self._with_selected(self.session.toggle_layer_visibility))

        # Crop Menu
        crop_menu = menubar.addMenu("&Crop")

        start_crop_action = crop_menu.addAction("&Start Crop")
        start_crop_action.setShortcut("C")
        start_crop_action.triggered.connect(self._refreshing(self.session.start_crop))

        ratio_menu = crop_menu.addMenu("Aspect Ratio")
        ratio_group = QActionGroup(self)
        for label, ratio in CROP_RATIOS:
            action = ratio_menu.addAction(label)
            action.setCheckable(True)
            action.setChecked(ratio is None)
            ratio_group.addAction(action)
            action.triggered.connect(lambda checked, r=ratio: self._crop_ratio(r))

        straighten_action = crop_menu.addAction("S&traighten...")
        straighten_action.triggered.connect(self.edit_straighten)

        grid_action = crop_menu.addAction("Show &Grid")
        grid_action.setCheckable(True)
        grid_action.setChecked(self.session.document.show_crop_grid)
        grid_action.triggered.connect(self._refreshing(self.session.toggle_crop_grid))

        crop_menu.addSeparator()

        apply_crop_action = crop_menu.addAction("&Apply Crop")
        apply_crop_action.setShortcut("Return")
        apply_crop_action.triggered.connect(lambda: self._run(self.session.apply_crop()))

        cancel_crop_action = crop_menu.addAction("&Cancel Crop")
        cancel_crop_action.setShortcut("Escape")
        cancel_crop_action.triggered.connect(self._refreshing(self.session.cancel_crop))

        # AI Menu
        ai_menu = menubar.addMenu("&AI")

        generate_action = ai_menu.addAction("&Generate...")
        generate_action.triggered.connect(self.ai_generate)

        enhance_action = ai_menu.addAction("&Enhance")
        enhance_action.triggered.connect(lambda: self._run(self.session.ai_enhance()))

        upscale_menu = ai_menu.addMenu("&Upscale")
        for factor in UPSCALE_FACTORS:
            action = upscale_menu.addAction(f"{factor}x")
            action.triggered.connect(lambda checked, f=factor: self._run(self.session.ai_upscale(f)))

        remove_bg_action = ai_menu.addAction("Remove &Background")
        remove_bg_action.triggered.connect(lambda: self._run(self.session.ai_remove_background()))

        expand_action = ai_menu.addAction("E&xpand...")
        expand_action.triggered.connect(self.ai_expand)

        ai_menu.addSeparator()

        fill_action = ai_menu.addAction("Generative &Fill")
        fill_action.triggered.connect(self._refreshing(self.session.start_generative_fill))

        cancel_fill_action = ai_menu.addAction("Cancel Generative Fill")
        cancel_fill_action.triggered.connect(self._refreshing(self.session.cancel_generative_fill))

        # View Menu
        view_menu = menubar.addMenu("&View")

        self.dark_mode_action = view_menu.addAction("&Dark Mode Text")
        self.dark_mode_action.setCheckable(True)
        self.dark_mode_action.setChecked(self.session.document.dark_mode)
        self.dark_mode_action.triggered.connect(self.session.set_dark_mode)

    def _update_recent_files_menu(self):
        """Update the recent files submenu"""
        self.recent_menu.clear()

        if not self.session.recent_files:
            no_recent_action = self.recent_menu.addAction("No recent files")
            no_recent_action.setEnabled(False)
            return

        for i, filepath in enumerate(self.session.recent_files):
            filename = os.path.basename(filepath)
            action = self.recent_menu.addAction(f"&{i + 1}. {filename}")
            action.setToolTip(filepath)
            action.triggered.connect(lambda checked, path=filepath: self._run(self._open_path(path)))

        self.recent_menu.addSeparator()
        clear_action = self.recent_menu.addAction("Clear Recent Files")
        clear_action.triggered.connect(self._clear_recent_files)

    def _clear_recent_files(self):
        self.session.clear_recent_files()
        self._update_recent_files_menu()

    # ============= Helpers =============

    def _run(self, coro):
        task = self.session.schedule(coro)
        task.add_done_callback(lambda _: self.canvas.update())
        self.canvas.update()
        return task

    def _refreshing(self, func):
        def handler(*_):
            func()
            self.canvas.update()
        return handler

    def _with_selected(self, func):
        def handler(*_):
            layer_id = self.session.document.layers.selected_layer_id
            if layer_id is None:
                self.session.notifier.notify("Select a layer first")
                return
            func(layer_id)
            self.canvas.update()
        return handler

    def _on_history_changed(self, can_undo, can_redo):
        self.undo_action.setEnabled(can_undo)
        self.redo_action.setEnabled(can_redo)

    def _refresh_status(self):
        message = self.session.processing_message
        self.status_label.setText(message if message else self.session.status_text)

    # ============= File =============

    def open_image(self):
        filepath, _ = QFileDialog.getOpenFileName(self, "Open Image", "", IMAGE_FILTER)
        if filepath:
            self._run(self._open_path(filepath))

    async def _open_path(self, filepath):
        opened = await self.session.open_file(filepath)
        self._update_recent_files_menu()
        return opened

    def export_image(self, preset):
        directory = QFileDialog.getExistingDirectory(self, "Export To", self.session.export_directory or "")
        if not directory:
            return
        self.session.export_directory = directory
        self.session._save_config()
        self._run(self.session.export(preset))

    # ============= Layers =============

    def add_image_layer(self):
        filepath, _ = QFileDialog.getOpenFileName(self, "Add Image Layer", "", IMAGE_FILTER)
        if not filepath:
            return
        with open(filepath, 'rb') as f:
            data = f.read()
        self._run(self.session.add_image_layer(data))

    def add_text_layer(self):
        session = self.session
        layer_id = session.add_text_layer()
        session.open_sheet('text')
        text, ok = QInputDialog.getText(self, "Text Layer", "Text:", text=session.document.layers.get(layer_id).text)
        if ok and text:
            session.update_layer(layer_id, text=text)
        session.close_sheet()
        self.canvas.update()

    def edit_border_radius(self):
        session = self.session
        layer_id = session.document.layers.selected_layer_id
        target = session._radius_target(layer_id)
        session.open_sheet('border')
        value, ok = QInputDialog.getInt(self, "Border Radius", "Radius (%):", int(target.value), 0, 100)
        if ok:
            session.set_border_radius(value, layer_id)
        session.close_sheet()
        self.canvas.update()

    # ============= Crop =============

    def _crop_ratio(self, ratio):
        self.session.set_crop_aspect_ratio(ratio)
        self.canvas.update()

    def edit_straighten(self):
        crop = self.session.document.crop
        if crop is None:
            self.session.notifier.notify("Start a crop first")
            return
        angle, ok = QInputDialog.getDouble(self, "Straighten", "Angle (degrees):",
                                           crop.straighten_angle, -45.0, 45.0, 1)
        if ok:
            self.session.set_straighten_angle(angle)
            self.canvas.update()

    # ============= AI =============

    def ai_generate(self):
        prompt, ok = QInputDialog.getText(self, "Generate Image", "Describe the image:")
        if ok:
            self._run(self.session.ai_generate(prompt))

    def ai_expand(self):
        factor, ok = QInputDialog.getDouble(self, "Expand Image", "Expansion factor:",
                                            DEFAULT_EXPAND_FACTOR, 1.1, 3.0, 1)
        if ok:
            self._run(self.session.ai_expand(factor))

    def _ask_fill_prompt(self):
        """Asked after each mask stroke; None abandons the fill"""
        prompt, ok = QInputDialog.getText(self, "Generative Fill", "What should fill the masked area?")
        return prompt if ok else None

    # ============= Events =============

    def closeEvent(self, event):
        self.session.shutdown()
        self.session._save_config()
        event.accept()


def main():
    """Main entry point for the Curve Editor application"""
    app = QtWidgets.QApplication([])

    # Use Fusion style with dark palette
    app.setStyle("Fusion")

    dark_palette = QPalette()
    dark_palette.setColor(QPalette.Window, QColor(53, 53, 53))
    dark_palette.setColor(QPalette.WindowText, Qt.white)
    dark_palette.setColor(QPalette.Base, QColor(25, 25, 25))
    dark_palette.setColor(QPalette.AlternateBase, QColor(53, 53, 53))
    dark_palette.setColor(QPalette.ToolTipBase, Qt.white)
    dark_palette.setColor(QPalette.ToolTipText, Qt.white)
    dark_palette.setColor(QPalette.Text, Qt.white)
    dark_palette.setColor(QPalette.Button, QColor(53, 53, 53))
    dark_palette.setColor(QPalette.ButtonText, Qt.white)
    dark_palette.setColor(QPalette.BrightText, Qt.red)
    dark_palette.setColor(QPalette.Link, QColor(102, 126, 234))
    dark_palette.setColor(QPalette.Highlight, QColor(102, 126, 234))
    dark_palette.setColor(QPalette.HighlightedText, Qt.black)

    app.setPalette(dark_palette)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    pump = AsyncPump(loop)

    window = CurveEditorWindow(loop)
    if len(sys.argv) > 1:
        window._run(window._open_path(sys.argv[1]))
    window.show()
    app.exec_()

    pump.stop()
    loop.close()


if __name__ == "__main__":
    main()
