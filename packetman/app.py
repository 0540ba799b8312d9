import logging
from typing import Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    Select,
    Static,
    TextArea,
    Tree,
)

from packetman.commands import (
    CreateCollection,
    DeleteCollection,
    DeleteRequest,
    RenameCollection,
    SaveRequest,
    SendRequest,
    Workbench,
)
from packetman.errors import RequestInFlight, WorkspaceError
from packetman.formatting import (
    default_request_name,
    format_body,
    format_bytes,
    format_header_lines,
    format_headers_json,
    parse_header_lines,
    status_class,
)
from packetman.models import METHODS, RequestSpec, ResponseResult, SavedRequest, Success
from packetman.utils.editor import edit_text

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = "Content-Type: application/json"


class SidebarTree(Tree):
    BINDINGS = [
        ("j", "cursor_down", "Down"),
        ("k", "cursor_up", "Up"),
    ]
    DEFAULT_CSS = """
    SidebarTree {
        width: 30%;
        border: solid green;
    }

    SidebarTree:focus {
        border: solid yellow;
    }
    """


class RequestEditorWidget(Vertical):
    DEFAULT_CSS = """
    RequestEditorWidget {
        border: solid blue;
        padding: 0 1;
        height: 1fr;
    }

    RequestEditorWidget:focus-within {
        border: solid yellow;
    }

    #request-line {
        height: auto;
    }

    #method {
        width: 16;
    }

    #url {
        width: 1fr;
    }

    #headers {
        height: 5;
    }

    #body {
        height: 1fr;
    }
    """

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Select(
                [(method, method) for method in METHODS],
                value="GET",
                allow_blank=False,
                id="method",
            ),
            Input(placeholder="https://api.example.com/users", id="url"),
            id="request-line",
        )
        yield Label("Headers (Name: Value per line)")
        yield TextArea(DEFAULT_HEADERS, id="headers")
        yield Label("Body")
        yield TextArea(id="body")

    def get_spec(self) -> RequestSpec:
        body = self.query_one("#body", TextArea).text.strip()
        return RequestSpec(
            method=str(self.query_one("#method", Select).value),
            url=self.query_one("#url", Input).value.strip(),
            headers=parse_header_lines(self.query_one("#headers", TextArea).text),
            body=body or None,
        )

    def set_spec(self, spec: RequestSpec) -> None:
        method = spec.method if spec.method in METHODS else "GET"
        self.query_one("#method", Select).value = method
        self.query_one("#url", Input).value = spec.url
        headers_text = format_header_lines(spec.headers) if spec.headers else DEFAULT_HEADERS
        self.query_one("#headers", TextArea).load_text(headers_text)
        self.query_one("#body", TextArea).load_text(spec.body or "")

    def set_body(self, body: str) -> None:
        self.query_one("#body", TextArea).load_text(body)


class ResponsePanelWidget(VerticalScroll):
    can_focus = True
    DEFAULT_CSS = """
    ResponsePanelWidget {
        border: solid cyan;
        padding: 1 2;
        height: 1fr;
    }

    ResponsePanelWidget:focus {
        border: solid yellow;
    }

    ResponsePanelWidget .success {
        color: green;
    }

    ResponsePanelWidget .error {
        color: red;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static(id="response-status")
        yield Static(id="response-content")

    def on_mount(self) -> None:
        self.set_note("Send a request to see the response")

    def set_note(self, note: str) -> None:
        status = self.query_one("#response-status", Static)
        status.set_classes("")
        status.update(Text(""))
        self.query_one("#response-content", Static).update(Text(f"Response\n\n{note}"))

    def set_result(self, result: ResponseResult) -> None:
        status = self.query_one("#response-status", Static)
        status.set_classes(status_class(result))
        status.update(Text(self._format_status_line(result)))
        self.query_one("#response-content", Static).update(
            Text(self._format_response_details(result))
        )

    def _format_status_line(self, result: ResponseResult) -> str:
        data = result.to_dict()
        size = format_bytes(data["size"]) if isinstance(result, Success) else "-"
        return (
            f"Status: {data['status']} {data['statusText']}"
            f"  Time: {data['duration']}ms"
            f"  Size: {size}"
        )

    def _format_response_details(self, result: ResponseResult) -> str:
        if not isinstance(result, Success):
            return f"Request failed:\n{result.message}"
        return (
            "[Headers]\n"
            f"{format_headers_json(result.headers)}\n\n"
            "[Body]\n"
            f"{format_body(result.body)}"
        )


class ConfirmDeleteScreen(ModalScreen[bool]):
    CSS = """
    ConfirmDeleteScreen {
        align: center middle;
    }

    #confirm-dialog {
        layout: vertical;
        width: auto;
        min-width: 32;
        max-width: 60;
        height: auto;
        padding: 1 2;
        border: solid $primary;
        background: $panel;
        align: center middle;
    }

    #confirm-message {
        text-align: center;
        content-align: center middle;
    }

    #confirm-buttons {
        margin-top: 1;
        width: auto;
        height: auto;
        align: center middle;
    }

    #confirm-buttons Button {
        margin: 0 1;
    }
    """

    BINDINGS = [
        ("y", "confirm", "Yes"),
        ("n", "cancel", "No"),
        ("escape", "cancel", "No"),
    ]

    def __init__(self, message: str) -> None:
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        yield Container(
            Static(Text(self.message), id="confirm-message"),
            Horizontal(
                Button("Yes", id="confirm-yes"),
                Button("No", id="confirm-no"),
                id="confirm-buttons",
            ),
            id="confirm-dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class PromptScreen(ModalScreen[Optional[str]]):
    CSS = """
    PromptScreen {
        align: center middle;
    }

    #prompt-dialog {
        layout: vertical;
        width: 60;
        height: auto;
        padding: 1 2;
        border: solid $primary;
        background: $panel;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, message: str, value: str = "") -> None:
        super().__init__()
        self.message = message
        self.initial = value

    def compose(self) -> ComposeResult:
        yield Container(
            Label(Text(self.message)),
            Input(value=self.initial, id="prompt-input"),
            id="prompt-dialog",
        )

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class PacketmanApp(App):
    TITLE = "PacketMan"
    # Editor widgets claim most ctrl+letter keys, so the main actions are priority bindings.
    BINDINGS = [
        Binding("ctrl+r", "send_request", "Send", priority=True),
        Binding("ctrl+s", "save_request", "Save", priority=True),
        Binding("ctrl+n", "new_collection", "New collection", priority=True),
        ("f2", "rename_collection", "Rename"),
        ("f4", "edit_body", "Edit body"),
        ("f8", "delete_selected", "Delete"),
        ("ctrl+q", "quit", "Quit"),
    ]

    CSS = """
    Screen {
        layout: vertical;
    }

    #main {
        height: 1fr;
    }

    #right-panel {
        width: 70%;
        layout: vertical;
        height: 1fr;
    }
    """

    def __init__(self, workbench: Workbench) -> None:
        super().__init__()
        self.workbench = workbench
        self.expanded: set[int] = set()
        self.active_request_id: Optional[int] = None
        self.last_result: Optional[ResponseResult] = None

    @property
    def store(self):
        return self.workbench.store

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Horizontal(
                SidebarTree("Collections", id="sidebar"),
                Container(
                    RequestEditorWidget(id="editor"),
                    ResponsePanelWidget(id="response-panel"),
                    id="right-panel",
                ),
                id="main",
            )
        )
        yield Footer()

    def on_mount(self) -> None:
        self.expanded = {c.id for c in self.store.list_collections()}
        self.render_sidebar()
        self.query_one("#url", Input).focus()

    def render_sidebar(self) -> None:
        tree = self.query_one(SidebarTree)
        tree.show_root = False
        tree.clear()
        tree.root.expand()
        collections = self.store.list_collections()
        if not collections:
            tree.root.add_leaf(
                "No collections yet. Press ctrl+n to create one!",
                data=None,
            )
            return
        for collection in collections:
            node = tree.root.add(
                Text(collection.name),
                data=("collection", collection.id),
                expand=collection.id in self.expanded,
            )
            requests = self.store.list_requests(collection.id)
            if not requests:
                node.add_leaf("No requests yet. Press ctrl+s to add one.", data=None)
                continue
            for saved in requests:
                label = Text(f"{saved.spec.method:<7} {saved.name}")
                if saved.id == self.active_request_id:
                    label.stylize("bold")
                node.add_leaf(label, data=("request", saved.id))

    def on_tree_node_expanded(self, event: Tree.NodeExpanded) -> None:
        if event.node.data and event.node.data[0] == "collection":
            self.expanded.add(event.node.data[1])

    def on_tree_node_collapsed(self, event: Tree.NodeCollapsed) -> None:
        if event.node.data and event.node.data[0] == "collection":
            self.expanded.discard(event.node.data[1])

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        data = event.node.data
        if not data or data[0] != "request":
            return
        try:
            saved = self.store.get_request(data[1])
        except WorkspaceError as exc:
            self.notify(str(exc), severity="error")
            return
        self.load_request(saved)

    def load_request(self, saved: SavedRequest) -> None:
        self.active_request_id = saved.id
        self.query_one(RequestEditorWidget).set_spec(saved.spec)
        self.render_sidebar()

    def action_send_request(self) -> None:
        if self.workbench.busy:
            self.notify("A request is already in flight", severity="warning")
            return
        spec = self.query_one(RequestEditorWidget).get_spec()
        self.query_one(ResponsePanelWidget).set_note("Waiting for response...")
        self.run_worker(self._send(spec), group="send")

    async def _send(self, spec: RequestSpec) -> None:
        try:
            result = await self.workbench.handle(SendRequest(spec))
        except RequestInFlight as exc:
            self.notify(str(exc), severity="warning")
            return
        self.last_result = result
        self.query_one(ResponsePanelWidget).set_result(result)

    def action_new_collection(self) -> None:
        self.push_screen(PromptScreen("Enter collection name:"), self._create_collection)

    async def _create_collection(self, name: Optional[str]) -> None:
        if name is None or not name.strip():
            return
        collection = await self._apply(CreateCollection(name))
        if collection is not None:
            self.expanded.add(collection.id)
            self.render_sidebar()

    def action_rename_collection(self) -> None:
        collection_id = self._selected_collection_id()
        if collection_id is None:
            self.notify("Select a collection first", severity="warning")
            return
        current = self.store.get_collection(collection_id).name
        self.push_screen(
            PromptScreen("Enter new name:", current),
            lambda name: self._rename_collection(collection_id, name),
        )

    async def _rename_collection(self, collection_id: int, name: Optional[str]) -> None:
        if name is None or not name.strip():
            return
        await self._apply(RenameCollection(collection_id, name))
        self.render_sidebar()

    def action_save_request(self) -> None:
        if not self.store.list_collections():
            self.notify("Please create a collection first!", severity="warning")
            return
        collection_id = self._selected_collection_id()
        if collection_id is None:
            self.notify("Select a collection in the sidebar first", severity="warning")
            return
        spec = self.query_one(RequestEditorWidget).get_spec()
        if not spec.url:
            self.notify("Please enter a URL to save", severity="warning")
            return
        self.push_screen(
            PromptScreen(
                "Enter a name for this request:",
                default_request_name(spec.method, spec.url),
            ),
            lambda name: self._save_request(collection_id, spec, name),
        )

    async def _save_request(
        self, collection_id: int, spec: RequestSpec, name: Optional[str]
    ) -> None:
        if name is None or not name.strip():
            return
        saved = await self._apply(SaveRequest(collection_id, name, spec))
        if saved is not None:
            self.expanded.add(collection_id)
            self.active_request_id = saved.id
            self.render_sidebar()
            self.notify("Request saved!")

    def action_delete_selected(self) -> None:
        data = self._selected_data()
        if data is None:
            return
        kind, ident = data
        if kind == "collection":
            collection = self.store.get_collection(ident)
            count = self.store.count_requests(ident)
            if count:
                message = f'Delete "{collection.name}" and its {count} request(s)? (y/n)'
            else:
                message = f'Delete "{collection.name}"? (y/n)'
            command = DeleteCollection(ident)
        else:
            message = "Delete this request? (y/n)"
            command = DeleteRequest(ident)
        self.push_screen(
            ConfirmDeleteScreen(message),
            lambda confirmed: self._delete(command, confirmed),
        )

    async def _delete(self, command, confirmed: Optional[bool]) -> None:
        if not confirmed:
            return
        await self._apply(command)
        if isinstance(command, DeleteCollection):
            self.expanded.discard(command.collection_id)
        elif command.request_id == self.active_request_id:
            self.active_request_id = None
        self.render_sidebar()

    def action_edit_body(self) -> None:
        editor = self.query_one(RequestEditorWidget)
        current = editor.query_one("#body", TextArea).text
        if self._driver is None:
            edited = edit_text(current, self.workbench.settings.editor)
        else:
            with self.suspend():
                edited = edit_text(current, self.workbench.settings.editor)
            self.refresh(layout=True)
        if edited is None:
            self.notify("Could not start the editor", severity="error")
            return
        editor.set_body(edited.rstrip("\n"))

    async def _apply(self, command):
        try:
            return await self.workbench.handle(command)
        except WorkspaceError as exc:
            logger.info("Rejected %s: %s", type(command).__name__, exc)
            self.notify(str(exc), severity="error")
            return None

    def _selected_data(self) -> Optional[tuple]:
        node = self.query_one(SidebarTree).cursor_node
        if node is None or not node.data:
            return None
        return node.data

    def _selected_collection_id(self) -> Optional[int]:
        data = self._selected_data()
        if data is None:
            return None
        kind, ident = data
        if kind == "collection":
            return ident
        try:
            return self.store.get_request(ident).collection_id
        except WorkspaceError:
            return None
