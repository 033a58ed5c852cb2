from io import StringIO

import pytest
from unittest.mock import Mock, patch
from rich.console import Console

from dropkick.browser import (
    BrowserMode,
    BrowserState,
    ExtractRequest,
    NodeKind,
    Selection,
    render,
    resolve_selections,
    run_browser,
)
from dropkick.errors import OverwriteRefusedError
from dropkick.template_store import TemplateStore

from .conftest import DOCKERFILE

RUST = "template-rust-wasm-http"


@pytest.fixture
def store(store_root):
    return TemplateStore(store_root)


@pytest.fixture
def target(tmp_path):
    path = tmp_path / "target"
    path.mkdir()
    return path


@pytest.fixture
def state(store, target):
    """Browser with the rust template expanded.

    Rows: template-python, template-rust-wasm-http, ci-pipeline, app,
    .gitlab-ci.yaml.tt, Dockerfile, logo.png, src
    """
    state = BrowserState(store, target)
    state.handle_key('down')
    state.handle_key('right')
    return state


def press(state, *keys):
    result = None
    for key in keys:
        result = state.handle_key(key)
    return result


def row_names(state):
    return [node.name for node in state.rows()]


def to_text(renderable):
    console = Console(file=StringIO(), width=120, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


class TestNavigation:
    """Test suite for moving through the template tree."""

    def test_starts_with_collapsed_templates(self, store, target):
        state = BrowserState(store, target)
        assert state.mode is BrowserMode.BROWSING
        assert row_names(state) == ["template-python", RUST]

    def test_expand_lists_kicklets_then_entries(self, state):
        assert row_names(state) == [
            "template-python", RUST, "ci-pipeline", "app",
            ".gitlab-ci.yaml.tt", "Dockerfile", "logo.png", "src",
        ]
        kinds = [node.kind for node in state.rows()[2:]]
        assert kinds == [
            NodeKind.KICKLET, NodeKind.KICKLET,
            NodeKind.FILE, NodeKind.FILE, NodeKind.FILE, NodeKind.DIRECTORY,
        ]

    def test_cursor_stays_in_bounds(self, state):
        press(state, 'up', 'up', 'k')
        assert state.cursor == 0
        press(state, *['down'] * 20)
        assert state.cursor == 7

    def test_nested_directory_and_back(self, state):
        state.cursor = 7
        press(state, 'right', 'down')
        assert state.current().name == "src/main.rs.tt"

        press(state, 'left')
        assert state.current().name == "src"

        press(state, 'left')
        assert "src/main.rs.tt" not in row_names(state)

    def test_collapse_template(self, state):
        state.cursor = 5
        press(state, 'h')
        assert state.current().name == RUST

        press(state, 'h')
        assert row_names(state) == ["template-python", RUST]

    def test_kicklet_shows_its_files(self, state):
        state.cursor = 2
        press(state, 'enter')
        assert state.status == f"{RUST}/ci-pipeline: .gitlab-ci.yaml, Dockerfile"

    def test_quit(self, state):
        press(state, 'q')
        assert state.running is False

    def test_empty_store(self, tmp_path, target):
        (tmp_path / "empty").mkdir()
        state = BrowserState(TemplateStore(tmp_path / "empty"), target)

        assert state.rows() == []
        assert "No templates found" in state.status
        assert press(state, 'down', 'right', 'space', 'e') is None
        assert "No templates found" in to_text(render(state))


class TestFileView:
    """Test suite for the file preview."""

    def test_open_and_close(self, state):
        state.cursor = 5
        press(state, 'right')

        assert state.mode is BrowserMode.VIEWING
        assert state.view.text == DOCKERFILE.decode()
        assert "Viewing: Dockerfile" in to_text(render(state))

        press(state, 'q')
        assert state.mode is BrowserMode.BROWSING
        assert state.view is None
        assert state.running is True

    def test_view_returns_to_selecting(self, state):
        state.cursor = 5
        press(state, 's', 'right', 'escape')
        assert state.mode is BrowserMode.SELECTING

    def test_scroll_is_clamped(self, state, store_root):
        (store_root / RUST / "Dockerfile").write_text("".join(f"line {i}\n" for i in range(30)))
        state.page_size = 10
        state.cursor = 5
        press(state, 'right', 'up')
        assert state.view.scroll == 0

        press(state, *['down'] * 50)
        assert state.view.scroll == 20

    def test_binary_file_is_not_opened(self, state):
        state.cursor = 6
        press(state, 'right')
        assert state.mode is BrowserMode.BROWSING
        assert state.status == "logo.png is a binary file"


class TestSelection:
    """Test suite for marking and confirming extraction."""

    def test_space_enters_selection_and_marks(self, state):
        state.cursor = 5
        press(state, 'space')

        assert state.mode is BrowserMode.SELECTING
        assert state.is_marked(state.current())
        assert "[x] Dockerfile" in to_text(render(state))

    def test_space_toggles(self, state):
        state.cursor = 5
        press(state, 'space', 'space')
        assert state.marks == {}
        assert "[ ] Dockerfile" in to_text(render(state))

    def test_directories_are_not_markable(self, state):
        state.cursor = 7
        press(state, 's', 'space')
        assert state.marks == {}

    def test_extract_with_nothing_marked(self, state):
        press(state, 's', 'e')
        assert state.mode is BrowserMode.SELECTING
        assert state.status == "Nothing marked yet"

    def test_escape_clears_marks(self, state):
        state.cursor = 5
        press(state, 'space', 'escape')
        assert state.mode is BrowserMode.BROWSING
        assert state.marks == {}

    def test_confirm_lists_destinations(self, state, target):
        (target / "Dockerfile").write_text("existing\n")
        state.cursor = 2
        press(state, 'space', 'e')

        assert state.mode is BrowserMode.CONFIRMING
        assert state.pending_destinations == [(".gitlab-ci.yaml", False), ("Dockerfile", True)]
        text = to_text(render(state))
        assert "exists" in text
        assert "new" in text

    def test_confirm_returns_request(self, state):
        state.cursor = 5
        request = press(state, 'space', 'e', 'y')
        assert request == ExtractRequest((Selection(NodeKind.FILE, RUST, "Dockerfile"),), overwrite=False)

    def test_confirm_with_overwrite(self, state):
        state.cursor = 5
        request = press(state, 'space', 'e', 'o')
        assert request.overwrite is True

    def test_cancel_returns_to_browsing(self, state):
        state.cursor = 5
        assert press(state, 'space', 'e', 'n') is None

        assert state.mode is BrowserMode.BROWSING
        assert state.marks == {}
        assert state.status == "Extraction cancelled"

    def test_complete_extraction_clears_selection(self, state):
        state.cursor = 5
        press(state, 'space', 'e', 'y')
        state.complete_extraction("done")

        assert state.mode is BrowserMode.BROWSING
        assert state.marks == {}
        assert state.pending == ()
        assert state.status == "done"

    def test_resolve_selections_in_mark_order(self, store):
        sources = resolve_selections(store, (
            Selection(NodeKind.FILE, RUST, "src/main.rs.tt"),
            Selection(NodeKind.KICKLET, RUST, "ci-pipeline"),
        ))
        assert [s.destination for s in sources] == ["src/main.rs", ".gitlab-ci.yaml", "Dockerfile"]


class TestRunBrowser:
    """Test suite for the terminal loop."""

    def setup_method(self):
        self.console = Console(file=StringIO(), width=100, height=30, color_system=None)

    @patch('dropkick.browser.read_key')
    def test_extracts_confirmed_selection(self, mock_read_key, store, target):
        mock_read_key.side_effect = ['down', 'right', 'down', 'down', 'down', 'down', 'space', 'e', 'y', 'q']
        extract = Mock(return_value="✅ done")

        run_browser(store, target, extract, console=self.console)

        extract.assert_called_once_with(
            ExtractRequest((Selection(NodeKind.FILE, RUST, "Dockerfile"),), overwrite=False)
        )

    @patch('dropkick.browser.read_key')
    def test_extraction_error_keeps_running(self, mock_read_key, store, target):
        mock_read_key.side_effect = ['down', 'right', 'down', 'down', 'down', 'down', 'space', 'e', 'o',
                                     'space', 'e', 'y', 'q']
        extract = Mock(side_effect=[OverwriteRefusedError(target / "Dockerfile"), "✅ done"])

        run_browser(store, target, extract, console=self.console)

        assert extract.call_count == 2
        assert extract.call_args_list[0][0][0].overwrite is True

    @patch('dropkick.browser.read_key')
    def test_ctrl_c_exits(self, mock_read_key, store, target):
        mock_read_key.side_effect = KeyboardInterrupt
        extract = Mock()

        run_browser(store, target, extract, console=self.console)

        extract.assert_not_called()

    @patch('dropkick.browser.read_key')
    def test_interrupted_prompt_cancels_extraction(self, mock_read_key, store, target):
        """Ctrl+C at a prompt during extraction returns to the tree."""
        mock_read_key.side_effect = ['down', 'right', 'down', 'down', 'down', 'down', 'space', 'e', 'y',
                                     'space', 'e', 'y', 'q']
        extract = Mock(side_effect=[KeyboardInterrupt, "✅ done"])

        with patch.object(BrowserState, 'complete_extraction', autospec=True,
                          side_effect=BrowserState.complete_extraction) as mock_complete:
            run_browser(store, target, extract, console=self.console)

        assert extract.call_count == 2
        assert mock_complete.call_args_list[0][0][1] == "Extraction cancelled"
        assert mock_complete.call_args_list[1][0][1] == "✅ done"
