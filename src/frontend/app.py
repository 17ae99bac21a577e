"""Main Textual app for the rolling-roles rules editor."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import Button, ContentSwitcher, Footer, Static, Tab, Tabs

from adapters.csv_storage import RulesFileStorage
from core.errors import RulesFormatError, StorageError
from core.rules_engine import GuildRules

from .constants import DEFAULT_RULES_PATH, DISCORD_BLURPLE
from .modals import ReloadConfirmScreen, UnsavedChangesScreen
from .state import RulesState
from .tabs.guide import GuideTab
from .tabs.rules import RulesTab


class RulesPanelApp(App):
    """Rules editor with global rules state and tabs."""

    def __init__(self, rules_path: str | Path | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if rules_path is None:
            rules_path = self._configured_rules_path()
        self.storage = RulesFileStorage(str(rules_path))
        self.rules_state = RulesState()

    BINDINGS = [
        ("ctrl+s", "save_rules", "Save"),
        ("ctrl+r", "reload_rules", "Reload"),
        ("q", "request_quit", "Quit"),
        ("ctrl+c", "request_quit", "Quit"),
    ]

    CSS_PATH = "app.tcss"

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static(f"file: {Path(self.storage.path).name}", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("", id="header-status")
                    yield Horizontal(
                        Button("Save", id="save-btn"),
                        Button("Reload", id="reload-btn"),
                        id="header-actions",
                    )

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(
                    Tab("Rules", id="rules"),
                    Tab("Guide", id="guide"),
                    id="tabs",
                )

        with ContentSwitcher(id="content"):
            yield RulesTab(id="rules")
            yield GuideTab(id="guide")
        yield Footer()

    def on_mount(self) -> None:
        self._load_rules()
        self._set_active_tab("rules")

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        tab_id = event.tab.id or ""
        if not tab_id:
            label = event.tab.label
            if hasattr(label, "plain"):
                label = label.plain
            tab_id = str(label).strip().lower()
        self._set_active_tab(tab_id)

    def _set_active_tab(self, tab_id: str) -> None:
        switcher = self.query_one("#content", ContentSwitcher)
        switcher.current = tab_id

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save-btn":
            self.action_save_rules()
        elif event.button.id == "reload-btn":
            self.action_reload_rules()

    def action_save_rules(self) -> None:
        self._save_rules()

    def action_reload_rules(self) -> None:
        if self.rules_state.dirty:
            self.push_screen(ReloadConfirmScreen(), self._handle_reload_choice)
        else:
            self._load_rules()

    def action_request_quit(self) -> None:
        if self.rules_state.dirty:
            self.push_screen(UnsavedChangesScreen(), self._handle_exit_choice)
        else:
            self.exit()

    def _handle_exit_choice(self, choice: str | None) -> None:
        if choice == "save":
            if self._save_rules():
                self.exit()
        elif choice == "discard":
            self.exit()

    def _handle_reload_choice(self, choice: str | None) -> None:
        if choice == "save":
            if self._save_rules():
                self._load_rules()
        elif choice == "reload":
            self._load_rules()

    def _load_rules(self) -> None:
        if not self.storage.exists():
            # A missing file is an empty rule set; saving creates it.
            self.rules_state.rules = {}
            self.rules_state.error = None
        else:
            try:
                self.rules_state.rules = self.storage.load_sync()
                self.rules_state.error = None
            except (StorageError, RulesFormatError) as exc:
                self.rules_state.rules = None
                self.rules_state.error = str(exc)
        self.rules_state.dirty = False
        self._refresh_header()
        self._refresh_rules_tab()

    def _save_rules(self) -> bool:
        if self.rules_state.rules is None:
            self.rules_state.error = "Nothing to save"
            self._refresh_header()
            return False
        try:
            self.storage.save_sync(self.rules_state.rules)
        except StorageError as exc:
            self.rules_state.error = f"save failed: {exc}"
            self._refresh_header()
            return False
        self.rules_state.dirty = False
        self.rules_state.error = None
        self._refresh_header()
        return True

    def guild_rules(self, guild_id: int) -> GuildRules:
        return (self.rules_state.rules or {}).get(guild_id, GuildRules())

    def set_guild_rules(self, guild_id: int, guild_rules: GuildRules) -> None:
        """Replace one guild's rules in memory and mark dirty."""
        if self.rules_state.rules is None:
            self.rules_state.rules = {}
        if guild_rules.is_empty:
            self.rules_state.rules.pop(guild_id, None)
        else:
            self.rules_state.rules[guild_id] = guild_rules
        self.mark_dirty()

    def mark_dirty(self) -> None:
        self.rules_state.dirty = True
        self._refresh_header()

    def _refresh_header(self) -> None:
        status = self.query_one("#header-status", Static)
        save_btn = self.query_one("#save-btn", Button)

        status.remove_class("status-loaded", "status-modified", "status-error")
        if self.rules_state.error:
            status.update(f"rules: {self.rules_state.error}")
            status.add_class("status-error")
        elif self.rules_state.dirty:
            status.update("rules: modified *")
            status.add_class("status-modified")
        else:
            status.update("rules: loaded")
            status.add_class("status-loaded")

        save_btn.disabled = self.rules_state.rules is None or not self.rules_state.dirty

    def _refresh_rules_tab(self) -> None:
        try:
            rules_tab = self.query_one(RulesTab)
        except Exception:
            return
        rules_tab.reload_from_state()

    @staticmethod
    def _configured_rules_path() -> Path:
        try:
            import settings
        except (FileNotFoundError, ValueError):
            return DEFAULT_RULES_PATH
        return Path(settings.RULES_PATH)

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("ROLLING", DISCORD_BLURPLE),
            (" ROLES > Rules Editor", "bold"),
        )
