"""
Interactive template browser.

The browser is a small state machine (``BrowserState``) driven one key at
a time, plus a thin terminal loop (``run_browser``) that renders it with
rich and reads keys with readchar.

Modes:

- BROWSING: move through the template tree, open files for viewing
- SELECTING: mark files and kicklets with space
- CONFIRMING: review destinations before extraction
- VIEWING: read-only, syntax-highlighted file preview

The marked selection stays inside the state until the user confirms; it
is then handed to the caller as an ``ExtractRequest`` and cleared.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import readchar
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from .errors import DropkickError, ManifestError, StoreEmptyError
from .file_filter import display_name, is_binary, list_entries, special_lexer_name, strip_template_suffix
from .models import SourceFile, Template
from .template_store import TemplateStore

logger = logging.getLogger(__name__)


class BrowserMode(Enum):
    """States of the browser."""
    BROWSING = "browsing"
    SELECTING = "selecting"
    CONFIRMING = "confirming"
    VIEWING = "viewing"


class NodeKind(Enum):
    """Kinds of rows in the template tree."""
    TEMPLATE = "template"
    DIRECTORY = "directory"
    FILE = "file"
    KICKLET = "kicklet"


@dataclass(frozen=True)
class TreeNode:
    """A row of the template tree."""
    kind: NodeKind
    template: str
    name: str
    depth: int
    path: Optional[Path] = None

    @property
    def key(self) -> Tuple[NodeKind, str, str]:
        return (self.kind, self.template, self.name)

    @property
    def label(self) -> str:
        if self.kind is NodeKind.TEMPLATE:
            return f"{self.name}/"
        if self.kind is NodeKind.DIRECTORY:
            return f"{display_name(self.name)}/"
        if self.kind is NodeKind.KICKLET:
            return f"⚡ {self.name}"
        return display_name(self.name)

    @property
    def expandable(self) -> bool:
        return self.kind in (NodeKind.TEMPLATE, NodeKind.DIRECTORY)

    @property
    def markable(self) -> bool:
        return self.kind in (NodeKind.FILE, NodeKind.KICKLET)


@dataclass(frozen=True)
class Selection:
    """A marked file or kicklet."""
    kind: NodeKind
    template: str
    name: str

    @property
    def reference(self) -> str:
        return f"{self.template}/{self.name}"


@dataclass(frozen=True)
class ExtractRequest:
    """Marked items handed over for checkout when the user confirms."""
    selections: Tuple[Selection, ...]
    overwrite: bool = False


@dataclass
class FileView:
    """State of the file preview."""
    path: Path
    text: str
    scroll: int = 0

    @property
    def line_count(self) -> int:
        return len(self.text.splitlines())


def resolve_selections(store: TemplateStore, selections: Tuple[Selection, ...]) -> List[SourceFile]:
    """Resolve marked files and kicklets to template files, in mark order."""
    sources: List[SourceFile] = []
    for selection in selections:
        if selection.kind is NodeKind.KICKLET:
            sources.extend(store.find_kicklet(selection.reference).resolve())
        else:
            sources.append(store.resolve_file(selection.reference))
    return sources


class BrowserState:
    """Key-driven state machine behind the interactive browser."""

    def __init__(self, store: TemplateStore, target_dir: Path, page_size: int = 20):
        self.store = store
        self.target_dir = Path(target_dir)
        self.page_size = page_size

        self.mode = BrowserMode.BROWSING
        self.running = True
        self.cursor = 0
        self.status: Optional[str] = None
        self.status_is_error = False

        self.marks: Dict[Tuple[NodeKind, str, str], Selection] = {}
        self.pending: Tuple[Selection, ...] = ()
        self.pending_destinations: List[Tuple[str, bool]] = []
        self.view: Optional[FileView] = None
        self._return_mode = BrowserMode.BROWSING

        self._expanded: Dict[Tuple[NodeKind, str, str], List[TreeNode]] = {}
        self._roots = self._load_templates()

    def _load_templates(self) -> List[TreeNode]:
        try:
            templates = self.store.scan()
        except StoreEmptyError as e:
            self.set_status(str(e))
            templates = e.templates
        return [
            TreeNode(NodeKind.TEMPLATE, template.name, template.name, 0, template.path)
            for template in templates
        ]

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def rows(self) -> List[TreeNode]:
        """Visible rows of the tree, depth-first."""
        visible: List[TreeNode] = []

        def walk(nodes: List[TreeNode]) -> None:
            for node in nodes:
                visible.append(node)
                if node.key in self._expanded:
                    walk(self._expanded[node.key])

        walk(self._roots)
        return visible

    def current(self) -> Optional[TreeNode]:
        rows = self.rows()
        if not rows:
            return None
        self.cursor = max(0, min(self.cursor, len(rows) - 1))
        return rows[self.cursor]

    def _children(self, node: TreeNode) -> List[TreeNode]:
        children: List[TreeNode] = []
        prefix = ""
        if node.kind is NodeKind.TEMPLATE:
            template = Template(name=node.template, path=node.path)
            try:
                kicklets = template.kicklets()
            except ManifestError as e:
                self.set_status(str(e), error=True)
                kicklets = []
            children.extend(
                TreeNode(NodeKind.KICKLET, node.template, kicklet.name, node.depth + 1)
                for kicklet in kicklets
            )
        else:
            prefix = f"{node.name}/"

        for entry in list_entries(node.path):
            kind = NodeKind.DIRECTORY if entry.is_dir() else NodeKind.FILE
            children.append(TreeNode(kind, node.template, prefix + entry.name, node.depth + 1, entry))
        return children

    def expand(self, node: TreeNode) -> None:
        if node.expandable and node.key not in self._expanded:
            self._expanded[node.key] = self._children(node)

    def collapse(self, node: TreeNode) -> None:
        # Drop descendants too so re-expanding rescans the filesystem
        for key in [k for k in self._expanded if k[1] == node.template and self._is_within(k, node)]:
            del self._expanded[key]

    @staticmethod
    def _is_within(key: Tuple[NodeKind, str, str], node: TreeNode) -> bool:
        if node.kind is NodeKind.TEMPLATE:
            return True
        return key[2] == node.name or key[2].startswith(f"{node.name}/")

    def _parent_index(self, rows: List[TreeNode], index: int) -> int:
        depth = rows[index].depth
        for i in range(index - 1, -1, -1):
            if rows[i].depth < depth:
                return i
        return index

    # ------------------------------------------------------------------
    # Status and selection
    # ------------------------------------------------------------------

    def set_status(self, message: Optional[str], error: bool = False) -> None:
        self.status = message
        self.status_is_error = error

    def toggle_mark(self, node: Optional[TreeNode]) -> None:
        if node is None or not node.markable:
            return
        if node.key in self.marks:
            del self.marks[node.key]
        else:
            self.marks[node.key] = Selection(node.kind, node.template, node.name)

    def is_marked(self, node: TreeNode) -> bool:
        return node.key in self.marks

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def handle_key(self, key: str) -> Optional[ExtractRequest]:
        """Process one key press.

        Returns:
            An ExtractRequest when the user confirms extraction, else None
        """
        if self.mode is BrowserMode.VIEWING:
            self._handle_viewing_key(key)
            return None
        if self.mode is BrowserMode.CONFIRMING:
            return self._handle_confirming_key(key)

        if self._handle_navigation_key(key):
            return None

        if key == 'q':
            self.running = False
        elif self.mode is BrowserMode.BROWSING:
            if key == 's':
                self.mode = BrowserMode.SELECTING
                self.set_status("Selection mode: space to mark, e to extract, esc to leave")
            elif key in (' ', 'space'):
                self.mode = BrowserMode.SELECTING
                self.toggle_mark(self.current())
        elif self.mode is BrowserMode.SELECTING:
            if key in (' ', 'space'):
                self.toggle_mark(self.current())
            elif key == 'e':
                self._enter_confirming()
            elif key == 'escape':
                self.marks.clear()
                self.mode = BrowserMode.BROWSING
                self.set_status(None)
        return None

    def _handle_navigation_key(self, key: str) -> bool:
        rows = self.rows()
        if not rows:
            return False

        if key in ('up', 'k'):
            self.cursor = max(0, self.cursor - 1)
        elif key in ('down', 'j'):
            self.cursor = min(len(rows) - 1, self.cursor + 1)
        elif key in ('right', 'l', 'enter'):
            node = self.current()
            if node.expandable:
                self.expand(node)
            elif node.kind is NodeKind.FILE:
                self._open_view(node)
            elif node.kind is NodeKind.KICKLET:
                self._describe_kicklet(node)
        elif key in ('left', 'h'):
            node = self.current()
            if node.key in self._expanded:
                self.collapse(node)
            else:
                self.cursor = self._parent_index(rows, self.cursor)
        else:
            return False
        return True

    def _describe_kicklet(self, node: TreeNode) -> None:
        try:
            kicklet = self.store.find_kicklet(f"{node.template}/{node.name}")
        except DropkickError as e:
            self.set_status(str(e), error=True)
            return
        self.set_status(f"{kicklet.qualified_name}: {', '.join(kicklet.files)}")

    def _open_view(self, node: TreeNode) -> None:
        try:
            data = node.path.read_bytes()
        except OSError as e:
            self.set_status(f"Cannot read {node.name}: {e}", error=True)
            return
        if is_binary(data, node.path.name):
            self.set_status(f"{node.name} is a binary file")
            return

        self.view = FileView(path=node.path, text=data.decode('utf-8'))
        self._return_mode = self.mode
        self.mode = BrowserMode.VIEWING

    def _handle_viewing_key(self, key: str) -> None:
        view = self.view
        if key in ('up', 'k'):
            view.scroll = max(0, view.scroll - 1)
        elif key in ('down', 'j'):
            if view.scroll + self.page_size < view.line_count:
                view.scroll += 1
        elif key in ('q', 'escape', 'left', 'h'):
            self.view = None
            self.mode = self._return_mode

    def _enter_confirming(self) -> None:
        if not self.marks:
            self.set_status("Nothing marked yet", error=True)
            return

        selections = tuple(self.marks.values())
        try:
            sources = resolve_selections(self.store, selections)
        except DropkickError as e:
            self.set_status(str(e), error=True)
            return

        destinations: List[Tuple[str, bool]] = []
        seen = set()
        for source in sources:
            if source.destination in seen:
                continue
            seen.add(source.destination)
            destinations.append((source.destination, (self.target_dir / source.destination).exists()))

        self.pending = selections
        self.pending_destinations = destinations
        self.mode = BrowserMode.CONFIRMING
        self.set_status(None)

    def _handle_confirming_key(self, key: str) -> Optional[ExtractRequest]:
        if key in ('y', 'enter'):
            return ExtractRequest(self.pending, overwrite=False)
        if key == 'o':
            return ExtractRequest(self.pending, overwrite=True)
        if key in ('n', 'escape', 'q'):
            self.complete_extraction("Extraction cancelled")
        return None

    def complete_extraction(self, message: str, error: bool = False) -> None:
        """Return to browsing after an extraction finished, failed or was cancelled."""
        self.marks.clear()
        self.pending = ()
        self.pending_destinations = []
        self.mode = BrowserMode.BROWSING
        self.set_status(message, error=error)


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------

HELP_TEXT = {
    BrowserMode.BROWSING: "↑/k ↓/j move | →/l expand/view | ←/h collapse | space/s select | q quit",
    BrowserMode.SELECTING: "↑/k ↓/j move | space toggle | e extract | esc clear | q quit",
    BrowserMode.CONFIRMING: "y/enter extract | o extract and overwrite | n/esc cancel",
    BrowserMode.VIEWING: "↑/k ↓/j scroll | ←/h/q/esc back",
}


def _render_status(state: BrowserState) -> RenderableType:
    if not state.status:
        return Text("")
    style = "bold red" if state.status_is_error else "yellow"
    return Text(state.status, style=style)


def _render_tree(state: BrowserState) -> RenderableType:
    table = Table.grid(padding=(0, 1))
    table.add_column(width=2)
    table.add_column()

    rows = state.rows()
    current = state.current()
    if not rows:
        table.add_row("", Text("No templates found", style="dim"))

    # Keep the cursor inside the visible window
    start = max(0, min(state.cursor - state.page_size // 2, len(rows) - state.page_size))
    for node in rows[start:start + state.page_size]:
        line = Text("  " * node.depth)
        if node.markable:
            marked = state.is_marked(node)
            line.append("[x] " if marked else "[ ] ", style="cyan" if marked else "")
        if node.kind is NodeKind.KICKLET:
            line.append(node.label, style="magenta")
        elif node.expandable:
            line.append(node.label, style="bold")
        else:
            line.append(node.label)
        if node == current:
            line.stylize("reverse")
        table.add_row("▶" if node == current else " ", line)

    title = escape(f" Templates: {state.store.root} ({len(state.marks)} selected) ")
    return Panel(table, title=title, border_style="cyan")


def _render_confirm(state: BrowserState) -> RenderableType:
    table = Table.grid(padding=(0, 2))
    table.add_column()
    table.add_column()
    for destination, exists in state.pending_destinations:
        flag = Text("exists", style="bold yellow") if exists else Text("new", style="green")
        table.add_row(flag, Text(destination))
    title = escape(f" Extract {len(state.pending_destinations)} file(s) into {state.target_dir} ")
    return Panel(table, title=title, border_style="green")


def _render_view(state: BrowserState) -> RenderableType:
    view = state.view
    name = strip_template_suffix(view.path.name)
    lexer = special_lexer_name(view.path) or Syntax.guess_lexer(name, code=view.text)
    start = view.scroll + 1
    syntax = Syntax(
        view.text,
        lexer,
        line_numbers=True,
        line_range=(start, view.scroll + state.page_size),
        word_wrap=False,
    )
    title = escape(f" Viewing: {name} (line {start}/{max(view.line_count, 1)}) ")
    return Panel(syntax, title=title, border_style="cyan")


def render(state: BrowserState) -> RenderableType:
    """Build the renderable for the current state."""
    if state.mode is BrowserMode.VIEWING:
        body = _render_view(state)
    elif state.mode is BrowserMode.CONFIRMING:
        body = _render_confirm(state)
    else:
        body = _render_tree(state)

    help_panel = Panel(Text(HELP_TEXT[state.mode], style="dim"), title=" Help ", border_style="bright_black")
    return Group(body, _render_status(state), help_panel)


def read_key() -> str:
    """Read a single key press and normalize its name."""
    key = readchar.readkey()

    if key in (readchar.key.UP, readchar.key.CTRL_P):
        return 'up'
    if key in (readchar.key.DOWN, readchar.key.CTRL_N):
        return 'down'
    if key == readchar.key.LEFT:
        return 'left'
    if key == readchar.key.RIGHT:
        return 'right'
    if key in (readchar.key.ENTER, readchar.key.CR, readchar.key.LF):
        return 'enter'
    if key == readchar.key.ESC:
        return 'escape'
    if key == readchar.key.SPACE:
        return 'space'
    if key == readchar.key.CTRL_C:
        raise KeyboardInterrupt

    return key


def run_browser(store: TemplateStore,
                target_dir: Path,
                extract: Callable[[ExtractRequest], str],
                console: Optional[Console] = None) -> None:
    """Run the interactive browser until the user quits.

    Args:
        store: Template store to browse
        target_dir: Directory extraction writes into
        extract: Performs the checkout for a confirmed request and returns
            a status message; DropkickError is shown inline
        console: Console to render to
    """
    console = console or Console()
    state = BrowserState(store, target_dir, page_size=max(5, console.size.height - 8))

    with Live(render(state), console=console, auto_refresh=False, screen=True) as live:
        while state.running:
            try:
                key = read_key()
            except KeyboardInterrupt:
                break

            request = state.handle_key(key)
            if request is not None:
                # Extraction may prompt (project name), so release the screen
                live.stop()
                try:
                    message = extract(request)
                except DropkickError as e:
                    logger.debug("Extraction failed: %s", e)
                    state.complete_extraction(f"❌ {e}", error=True)
                except KeyboardInterrupt:
                    # Ctrl+C at a name or overwrite prompt
                    state.complete_extraction("Extraction cancelled")
                else:
                    state.complete_extraction(message)
                finally:
                    live.start()

            state.page_size = max(5, console.size.height - 8)
            live.update(render(state), refresh=True)
