"""
Tests for EditorSession workflows.

Covers:
- Import (decode failure, superseded import, open_file and recent files)
- AI operations (success, failure leaves the document alone, Busy mode)
- Locked and busy layers
- Sheets as commit points
- Config persistence (dark mode, recent files)
"""
import asyncio
import json
import os

import pytest
from PIL import Image

from conftest import make_jpeg, make_png, run, FakeAIService
from curve_editor.components.gestures import EditorMode
from curve_editor.main.session import EditorSession
from curve_editor.models.document import Viewport


def make_session(tmp_path, ai, **kwargs):
    return EditorSession(Viewport(800, 600), ai_service=ai, config_dir=str(tmp_path / 'config'), **kwargs)


# ══════════════════════════════════════════════════════════════════════════
# Import
# ══════════════════════════════════════════════════════════════════════════

class TestImport:

    def test_import_sets_base_image(self, loaded_session):
        doc = loaded_session.document
        assert doc.image_size == (800, 600)
        assert doc.base_draw_size() == (640, 480)
        assert loaded_session.history_manager.get_current_description() == "Import image"

    def test_import_jpeg(self, session):
        assert run(session.import_image(make_jpeg(120, 90)))
        assert session.document.image_size == (120, 90)

    def test_decode_failure_keeps_document(self, loaded_session):
        session = loaded_session
        before = session.document.base_image_data
        assert run(session.import_image(b'not an image')) is False
        assert session.document.base_image_data == before
        assert session.notifier.messages[-1] == "Could not load image"
        assert len(session.history_manager) == 1

    def test_oversized_image_is_reported(self, loaded_session, monkeypatch):
        session = loaded_session
        before = session.document.base_image_data
        monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 1000)
        assert run(session.import_image(make_png(100, 100))) is False
        assert session.document.base_image_data == before
        assert session.notifier.messages[-1] == "Could not load image"

    def test_import_resets_document(self, loaded_session, small_png):
        session = loaded_session
        session.add_text_layer()
        session.document.transform.x = 40
        session.set_border_radius(30)
        assert run(session.import_image(small_png))
        doc = session.document
        assert doc.layers.text_layers == []
        assert doc.transform.x == 0
        assert doc.border_radius.value == 0
        assert len(session.history_manager) == 1

    def test_latest_import_wins(self, session):
        async def scenario():
            first = asyncio.ensure_future(session.import_image(make_png(10, 10)))
            second = asyncio.ensure_future(session.import_image(make_png(20, 20)))
            return await asyncio.gather(first, second)

        assert run(scenario()) == [False, True]
        assert session.document.image_size == (20, 20)

    def test_import_then_drag_then_undo(self, loaded_session):
        session = loaded_session
        g = session.gestures
        g.pointer_down(400, 300)
        g.pointer_move(450, 300)
        g.pointer_move(500, 350)
        g.pointer_up()
        assert (session.document.transform.x, session.document.transform.y) == (100, 50)
        assert session.history_manager.get_current_description() == "Pan"
        assert run(session.undo())
        assert (session.document.transform.x, session.document.transform.y) == (0, 0)

    def test_open_file_adds_recent(self, session, tmp_path, base_png):
        path = tmp_path / 'photo.png'
        path.write_bytes(base_png)
        assert run(session.open_file(str(path)))
        assert session.recent_files == [os.path.abspath(str(path))]

    def test_open_missing_file(self, session, tmp_path):
        assert run(session.open_file(str(tmp_path / 'missing.png'))) is False
        assert session.notifier.messages[-1] == "Could not open missing.png"
        assert session.recent_files == []

    def test_preview_matches_viewport(self, loaded_session):
        loaded_session.set_viewport(400, 300, 2.0)
        assert loaded_session.render_preview().size == (800, 600)


# ══════════════════════════════════════════════════════════════════════════
# AI operations
# ══════════════════════════════════════════════════════════════════════════

class TestAIOperations:

    def test_generate_replaces_base_and_resets_transform(self, loaded_session, fake_ai):
        session = loaded_session
        session.document.transform.scale = 2
        assert run(session.ai_generate("a lighthouse"))
        assert fake_ai.calls == [('generate', ("a lighthouse",))]
        assert session.document.image_size == (64, 48)
        assert session.document.transform.scale == 1
        assert session.history_manager.get_current_description() == "AI generate"

    def test_generate_needs_prompt(self, session, fake_ai):
        assert run(session.ai_generate("   ")) is False
        assert fake_ai.calls == []
        assert session.notifier.messages[-1] == "Describe the image to generate"

    def test_generate_failure_leaves_document(self, tmp_path, base_png, failing_ai):
        session = make_session(tmp_path, failing_ai)
        run(session.import_image(base_png))
        assert run(session.ai_generate("a lighthouse")) is False
        assert session.document.image_size == (800, 600)
        assert session.document.base_image_data == base_png
        assert session.notifier.messages[-1] == "AI generate failed"
        assert not session.is_processing
        assert session.mode == EditorMode.IDLE
        assert len(session.history_manager) == 1

    def test_enhance_keeps_transform(self, loaded_session):
        session = loaded_session
        session.document.transform.x = 30
        assert run(session.ai_enhance())
        assert session.document.transform.x == 30
        assert session.notifier.messages[-1] == "Image enhanced"

    def test_upscale_passes_factor(self, loaded_session, fake_ai):
        assert run(loaded_session.ai_upscale(4))
        assert fake_ai.calls[-1][1][1] == 4
        assert loaded_session.notifier.messages[-1] == "Image upscaled 4x"

    def test_service_message_wins(self, loaded_session, fake_ai):
        fake_ai.is_mock = True
        fake_ai.message = "Background removal needs a Hugging Face API key"
        assert run(loaded_session.ai_remove_background())
        assert loaded_session.notifier.messages[-1] == fake_ai.message

    def test_expand_passes_factor_and_prompt(self, loaded_session, fake_ai):
        assert run(loaded_session.ai_expand(2.0, "more sky"))
        assert fake_ai.calls[-1][1][1:] == (2.0, "more sky")
        assert loaded_session.history_manager.get_current_description() == "Expand"

    def test_enhance_layer_only_touches_layer(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        assert run(session.ai_enhance(layer_id))
        assert session.document.layers.get(layer_id).decoded.size == (64, 48)
        assert session.document.image_size == (800, 600)

    def test_enhance_without_image(self, session, fake_ai):
        assert run(session.ai_enhance()) is False
        assert fake_ai.calls == []

    def test_undo_ai_result(self, loaded_session):
        run(loaded_session.ai_enhance())
        assert run(loaded_session.undo())
        assert loaded_session.document.image_size == (800, 600)


# ══════════════════════════════════════════════════════════════════════════
# Busy mode
# ══════════════════════════════════════════════════════════════════════════

class TestBusy:

    def test_busy_while_call_outstanding(self, loaded_session, fake_ai):
        session = loaded_session

        async def scenario():
            fake_ai.gate = asyncio.Event()
            first = asyncio.ensure_future(session.ai_enhance())
            await asyncio.sleep(0.05)
            assert session.is_processing
            assert session.mode == EditorMode.BUSY
            assert session.processing_message == "Enhance..."
            # Same target refuses a second call
            assert await session.ai_upscale(2) is False
            fake_ai.gate.set()
            return await first

        assert run(scenario())
        assert "still running" in session.notifier.messages[-2]
        assert not session.is_processing
        assert session.mode == EditorMode.IDLE
        assert [op for op, _ in fake_ai.calls] == ['enhance']

    def test_gestures_blocked_while_busy(self, loaded_session, fake_ai):
        session = loaded_session

        async def scenario():
            fake_ai.gate = asyncio.Event()
            task = asyncio.ensure_future(session.ai_enhance())
            await asyncio.sleep(0.05)
            session.gestures.pointer_down(400, 300)
            session.gestures.pointer_move(460, 300)
            session.gestures.pointer_up()
            fake_ai.gate.set()
            await task

        run(scenario())
        assert session.document.transform.x == 0

    def test_busy_layer_cannot_be_deleted(self, loaded_session, small_png, fake_ai):
        session = loaded_session

        async def scenario():
            layer_id = await session.add_image_layer(small_png)
            fake_ai.gate = asyncio.Event()
            task = asyncio.ensure_future(session.ai_enhance(layer_id))
            await asyncio.sleep(0.05)
            refused = session.delete_layer(layer_id)
            fake_ai.gate.set()
            await task
            return layer_id, refused

        layer_id, refused = run(scenario())
        assert refused is False
        assert session.document.layers.get(layer_id) is not None


# ══════════════════════════════════════════════════════════════════════════
# Layers
# ══════════════════════════════════════════════════════════════════════════

class TestLayerOperations:

    def test_locked_layer_refuses_edits(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        session.toggle_layer_lock(layer_id)
        assert session.update_layer(layer_id, opacity=20) is False
        assert "is locked" in session.notifier.messages[-1]
        assert session.document.layers.get(layer_id).opacity == 100
        assert session.delete_layer(layer_id) is False

    def test_locked_layer_allows_visibility_and_unlock(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        session.toggle_layer_lock(layer_id)
        assert session.update_layer(layer_id, visible=False)
        assert session.update_layer(layer_id, locked=False)
        assert session.delete_layer(layer_id)

    def test_update_is_not_a_commit(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        for opacity in (90, 80, 70):
            session.update_layer(layer_id, opacity=opacity)
        assert len(session.history_manager) == 2
        session.commit_layer_changes("Opacity")
        assert len(session.history_manager) == 3

    def test_reorder_at_boundary_not_committed(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        assert session.reorder_layer(layer_id, 'up') is False
        assert session.history_manager.get_current_description() == "Add image layer"

    def test_duplicate_and_delete(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        copy_id = session.duplicate_layer(layer_id)
        assert session.document.layers.get(copy_id).name.endswith(" copy")
        assert session.delete_layer(copy_id)
        assert session.history_manager.get_current_description() == "Delete layer"

    def test_layer_radius_targets_layer(self, loaded_session, small_png):
        session = loaded_session
        layer_id = run(session.add_image_layer(small_png))
        session.set_border_radius(40, layer_id=layer_id)
        assert session.document.layers.get(layer_id).border_radius.value == 40
        assert session.document.border_radius.value == 0

    def test_text_layer_uses_dark_mode_colour(self, loaded_session):
        loaded_session.document.dark_mode = True
        layer_id = loaded_session.add_text_layer()
        assert loaded_session.document.layers.get(layer_id).color == "#ffffff"


# ══════════════════════════════════════════════════════════════════════════
# Sheets
# ══════════════════════════════════════════════════════════════════════════

class TestSheets:

    def test_border_sheet_commits_on_close(self, loaded_session):
        session = loaded_session
        session.open_sheet('border')
        for value in (10, 20, 30):
            session.set_border_radius(value)
        assert len(session.history_manager) == 1
        session.close_sheet()
        assert session.history_manager.get_current_description() == "Border radius"
        assert run(session.undo())
        assert session.document.border_radius.value == 0

    def test_text_sheet_close_stops_editing(self, loaded_session):
        session = loaded_session
        layer_id = session.add_text_layer()
        session.open_sheet('text')
        session.update_layer(layer_id, text="Hello")
        session.close_sheet()
        assert session.document.layers.editing_text_id is None
        assert session.history_manager.get_current_description() == "Edit text"

    def test_other_sheets_do_not_commit(self, loaded_session):
        loaded_session.open_sheet('export')
        loaded_session.close_sheet()
        assert len(loaded_session.history_manager) == 1


# ══════════════════════════════════════════════════════════════════════════
# Config
# ══════════════════════════════════════════════════════════════════════════

class TestConfig:

    def test_dark_mode_persisted(self, tmp_path):
        session = make_session(tmp_path, FakeAIService())
        session.set_dark_mode(True)
        with open(session.config_file, encoding='utf-8') as f:
            assert json.load(f)['dark_mode'] is True
        reloaded = make_session(tmp_path, FakeAIService(), load_config=True)
        assert reloaded.document.dark_mode is True

    def test_recent_files_reloaded_and_filtered(self, tmp_path, base_png):
        keep = tmp_path / 'keep.png'
        gone = tmp_path / 'gone.png'
        keep.write_bytes(base_png)
        gone.write_bytes(base_png)
        session = make_session(tmp_path, FakeAIService())
        run(session.open_file(str(gone)))
        run(session.open_file(str(keep)))
        assert session.recent_files[0] == os.path.abspath(str(keep))
        gone.unlink()
        reloaded = make_session(tmp_path, FakeAIService(), load_config=True)
        assert reloaded.recent_files == [os.path.abspath(str(keep))]

    def test_recent_files_capped(self, tmp_path, base_png):
        session = make_session(tmp_path, FakeAIService())
        for i in range(12):
            path = tmp_path / f'img{i}.png'
            path.write_bytes(base_png)
            session._add_to_recent_files(str(path))
        assert len(session.recent_files) == session.max_recent_files == 10
        assert session.recent_files[0].endswith('img11.png')

    def test_clear_recent_files(self, tmp_path):
        session = make_session(tmp_path, FakeAIService())
        session.recent_files = ['/x.png']
        session.clear_recent_files()
        assert session.recent_files == []
        with open(session.config_file, encoding='utf-8') as f:
            assert json.load(f)['recent_files'] == []

    def test_missing_config_uses_defaults(self, tmp_path):
        session = make_session(tmp_path, FakeAIService(), load_config=True)
        assert session.recent_files == []
        assert session.document.dark_mode is False

    def test_settings_loaded(self, tmp_path):
        payload = '{"ai_timeout": 15, "export_directory": "/tmp/out"}'
        config_dir = tmp_path / 'config'
        config_dir.mkdir()
        (config_dir / 'config.json').write_text(payload, encoding='utf-8')
        session = make_session(tmp_path, FakeAIService(), load_config=True)
        assert session.ai_timeout == 15
        assert session.export_directory == "/tmp/out"
