"""Modal dialogs for the Textual rules editor."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Select, Static, TextArea

from core.models import Rule, RuleKind

from .validators import parse_rule_form

KIND_OPTIONS = [
    ("Named Activity", RuleKind.NAMED_ACTIVITY.value),
    ("Default (else)", RuleKind.DEFAULT.value),
]


class UnsavedChangesScreen(ModalScreen[str]):
    """Prompt when exiting with unsaved changes."""

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Unsaved changes", classes="modal-title"),
            Static("Save rules before exit?", classes="modal-body"),
            Horizontal(
                Button("Save", id="unsaved-save", variant="success"),
                Button("Discard", id="unsaved-discard", variant="error"),
                Button("Cancel", id="unsaved-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "unsaved-save":
            self.dismiss("save")
        elif event.button.id == "unsaved-discard":
            self.dismiss("discard")
        else:
            self.dismiss("cancel")


class ReloadConfirmScreen(ModalScreen[str]):
    """Prompt when reloading with unsaved changes."""

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Reload rules?", classes="modal-title"),
            Static("Unsaved changes will be lost.", classes="modal-body"),
            Horizontal(
                Button("Save", id="reload-save"),
                Button("Reload", id="reload-reload", variant="warning"),
                Button("Cancel", id="reload-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "reload-save":
            self.dismiss("save")
        elif event.button.id == "reload-reload":
            self.dismiss("reload")
        else:
            self.dismiss("cancel")


class AddRuleScreen(ModalScreen[Rule | None]):
    """Modal form for adding a new rule."""

    def __init__(self, guild_id: int | None = None, guild_name: str = "") -> None:
        super().__init__()
        self._guild_id = guild_id
        self._guild_name = guild_name

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Add rule", classes="modal-title"),
            Static("", id="add-error", classes="modal-error"),
            Static("guild_id / guild name", classes="form-label"),
            Horizontal(
                Input(
                    value=str(self._guild_id) if self._guild_id else "",
                    placeholder="Guild id",
                    id="add-guild-id",
                ),
                Input(value=self._guild_name, placeholder="Guild name", id="add-guild-name"),
                classes="form-row",
            ),
            Static("role_id / role name", classes="form-label"),
            Horizontal(
                Input(placeholder="Role id or <@&id>", id="add-role-id"),
                Input(placeholder="Role name", id="add-role-name"),
                classes="form-row",
            ),
            Static("type", classes="form-label"),
            Select(KIND_OPTIONS, value=RuleKind.NAMED_ACTIVITY.value, allow_blank=False, id="add-kind"),
            Static("activities (one per line)", classes="form-label"),
            TextArea(id="add-activities"),
            Static("comment (optional)", classes="form-label"),
            Input(placeholder="Comment", id="add-comment"),
            Horizontal(
                Button("Add", id="add-confirm", variant="success"),
                Button("Cancel", id="add-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--form",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "add-cancel":
            self.dismiss(None)
            return
        if event.button.id != "add-confirm":
            return
        result = parse_rule_form(
            guild_id=self.query_one("#add-guild-id", Input).value,
            guild_name=self.query_one("#add-guild-name", Input).value,
            role_id=self.query_one("#add-role-id", Input).value,
            role_name=self.query_one("#add-role-name", Input).value,
            kind=str(self.query_one("#add-kind", Select).value),
            activities=self.query_one("#add-activities", TextArea).text,
            comment=self.query_one("#add-comment", Input).value,
        )
        if result.error or result.rule is None:
            self.query_one("#add-error", Static).update(result.error or "invalid rule")
            return
        self.dismiss(result.rule)


class DeleteRuleScreen(ModalScreen[bool]):
    """Confirm deletion of a rule."""

    def __init__(self, rule_name: str) -> None:
        super().__init__()
        self._rule_name = rule_name or "(unnamed rule)"

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Delete rule?", classes="modal-title"),
            Static(self._rule_name, classes="modal-body"),
            Horizontal(
                Button("Delete", id="delete-rule-confirm", variant="error"),
                Button("Cancel", id="delete-rule-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "delete-rule-confirm":
            self.dismiss(True)
        else:
            self.dismiss(False)
