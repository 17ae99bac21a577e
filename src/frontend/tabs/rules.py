"""Rules tab implementation."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Static, TextArea

from adapters.rule_formatting import format_rule_line, rule_value
from core.errors import RuleError
from core.models import Rule
from core.reconciler import desired_role_ids, reconcile
from core.rules_codec import sorted_rules
from ..modals import AddRuleScreen, DeleteRuleScreen
from ..validators import parse_activity_lines, parse_snowflake


def _row_key(rule: Rule) -> str:
    return f"{rule.guild_id}:{rule.role_id}"


def _split_row_key(row_key: str) -> tuple[int, int]:
    guild_id, _, role_id = row_key.partition(":")
    return int(guild_id), int(role_id)


class RulesTab(Container):
    """Rules tab for editing the rules file and testing matches."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_row_key: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="rules-panel"):
            with Horizontal(id="rules-body"):
                with Container(id="rules-left"):
                    yield DataTable(id="rules-table", cursor_type="row")
                with Container(id="rules-right"):
                    yield Static("Rule editor", id="rules-title")
                    yield Static("", id="rule-summary")
                    yield Static("activities (one per line)", classes="form-label")
                    yield TextArea(id="rule-activities")
                    yield Static("comment", classes="form-label")
                    yield Input(placeholder="Comment", id="rule-comment")
                    yield Static("", id="rule-error", classes="modal-error")
                    yield Static("Rule tester", id="rules-test-title")
                    with Horizontal(id="rules-test-ids"):
                        yield Input(placeholder="Guild id", id="rule-test-guild")
                        yield Input(placeholder="Held role ids, comma separated", id="rule-test-held")
                    yield TextArea(id="rule-test-activities")
                    with Horizontal(id="rules-test-actions"):
                        yield Button("Test", id="rule-test", variant="primary")
                    yield Static("", id="rule-test-result")
            with Horizontal(id="rules-actions"):
                yield Button("Add rule", id="add-rule", variant="success")
                yield Button("Delete rule", id="delete-rule", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#rules-table", DataTable)
        table.add_column("guild", key="guild", width=22)
        table.add_column("role", key="role", width=22)
        table.add_column("type", key="type", width=16)
        table.add_column("activities", key="activities", width=36)
        table.zebra_stripes = True
        self.query_one("#rules-test-actions").styles.height = 3
        self._table_ready = True
        self.reload_from_state()
        self._set_form_state(None)

    def reload_from_state(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#rules-table", DataTable)
        table.clear()
        for rule in self._iter_rules():
            table.add_row(
                rule.guild_name or str(rule.guild_id),
                rule.role_name or str(rule.role_id),
                rule.kind.value,
                rule_value(rule),
                key=_row_key(rule),
            )
        if self._current_rule() is None:
            self._current_row_key = None
            self._set_form_state(None)
        self._update_action_state()

    def _iter_rules(self) -> Iterable[Rule]:
        return sorted_rules(self.app.rules_state.rules or {})

    def _current_rule(self) -> Optional[Rule]:
        if self._current_row_key is None:
            return None
        try:
            guild_id, role_id = _split_row_key(self._current_row_key)
        except ValueError:
            return None
        return self.app.guild_rules(guild_id).get_rule(role_id)

    def _update_action_state(self) -> None:
        delete_btn = self.query_one("#delete-rule", Button)
        delete_btn.disabled = self._current_row_key is None

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._current_row_key = self._coerce_row_key(event.row_key)
        self._set_form_state(self._current_rule())
        self._update_action_state()

    @on(TextArea.Changed, "#rule-activities")
    def _on_activities_changed(self, event: TextArea.Changed) -> None:
        if self._loading_form:
            return
        rule = self._current_rule()
        if rule is None or rule.is_default:
            return
        activities = parse_activity_lines(event.text_area.text)
        if activities == rule.activities:
            return
        self._replace_rule(replace(rule, activities=activities))

    @on(Input.Changed, "#rule-comment")
    def _on_comment_changed(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        rule = self._current_rule()
        if rule is None:
            return
        comment = event.value.strip()
        if comment == rule.comment:
            return
        self._replace_rule(replace(rule, comment=comment))

    def _replace_rule(self, rule: Rule) -> None:
        error = self.query_one("#rule-error", Static)
        try:
            updated = self.app.guild_rules(rule.guild_id).with_replaced(rule)
        except RuleError as exc:
            error.update(str(exc))
            return
        error.update("")
        self.app.set_guild_rules(rule.guild_id, updated)
        self._update_table_cell(rule, "activities", rule_value(rule))
        self.query_one("#rule-summary", Static).update(format_rule_line(rule))

    @on(Button.Pressed, "#add-rule")
    def _on_add_rule(self) -> None:
        current = self._current_rule()
        if current is not None:
            screen = AddRuleScreen(current.guild_id, current.guild_name)
        else:
            screen = AddRuleScreen()
        self.app.push_screen(screen, self._handle_add_rule)

    def _handle_add_rule(self, rule: Rule | None) -> None:
        if rule is None:
            return
        error = self.query_one("#rule-error", Static)
        try:
            updated = self.app.guild_rules(rule.guild_id).with_rule(rule)
        except RuleError as exc:
            error.update(str(exc))
            return
        error.update("")
        self.app.set_guild_rules(rule.guild_id, updated)
        self.reload_from_state()
        self._select_row(_row_key(rule))

    @on(Button.Pressed, "#delete-rule")
    def _on_delete_rule(self) -> None:
        rule = self._current_rule()
        if rule is None:
            return
        self.app.push_screen(DeleteRuleScreen(format_rule_line(rule)), self._handle_delete_rule)

    def _handle_delete_rule(self, confirmed: bool | None) -> None:
        if not confirmed:
            return
        rule = self._current_rule()
        if rule is None:
            return
        try:
            updated, _ = self.app.guild_rules(rule.guild_id).without_rule(rule.role_id)
        except RuleError as exc:
            self.query_one("#rule-error", Static).update(str(exc))
            return
        self.app.set_guild_rules(rule.guild_id, updated)
        self._current_row_key = None
        self.reload_from_state()
        self._set_form_state(None)

    @on(Button.Pressed, "#rule-test")
    def _on_test_rule(self) -> None:
        result = self.query_one("#rule-test-result", Static)
        guild = parse_snowflake(self.query_one("#rule-test-guild", Input).value, "guild id")
        if guild.error or guild.value is None:
            result.update(guild.error or "invalid guild id")
            return
        guild_rules = self.app.guild_rules(guild.value)
        if guild_rules.is_empty:
            result.update("No rules configured for this guild.")
            return

        held: set[int] = set()
        for raw in self.query_one("#rule-test-held", Input).value.split(","):
            if not raw.strip():
                continue
            info = parse_snowflake(raw, "role id")
            if info.error or info.value is None:
                result.update(info.error or "invalid role id")
                return
            held.add(info.value)

        activities = parse_activity_lines(self.query_one("#rule-test-activities", TextArea).text)
        desired = desired_role_ids(guild_rules, activities)
        delta = reconcile(guild_rules, held, activities)

        def names(role_ids: Iterable[int]) -> str:
            labels = []
            for role_id in sorted(role_ids):
                rule = guild_rules.get_rule(role_id)
                labels.append(rule.role_name if rule is not None else str(role_id))
            return ", ".join(labels) or "-"

        lines = [
            f"Desired: {names(desired)}",
            f"Add: {names(delta.to_add)}",
            f"Remove: {names(delta.to_remove)}",
        ]
        if not activities:
            lines.append("No activities, so no rule applies.")
        result.update("\n".join(lines))

    def _set_form_state(self, rule: Optional[Rule]) -> None:
        self._loading_form = True
        summary = self.query_one("#rule-summary", Static)
        activities_input = self.query_one("#rule-activities", TextArea)
        comment_input = self.query_one("#rule-comment", Input)
        self.query_one("#rule-error", Static).update("")
        if rule is None:
            summary.update("Select a rule to edit.")
            activities_input.text = ""
            activities_input.disabled = True
            comment_input.value = ""
            comment_input.disabled = True
        else:
            summary.update(format_rule_line(rule))
            activities_input.text = "\n".join(sorted(rule.activities, key=str.lower))
            activities_input.disabled = rule.is_default
            comment_input.value = rule.comment
            comment_input.disabled = False
            self.query_one("#rule-test-guild", Input).value = str(rule.guild_id)
        self._loading_form = False

    def _select_row(self, row_key: str) -> None:
        table = self.query_one("#rules-table", DataTable)
        try:
            table.move_cursor(row=table.get_row_index(row_key))
        except Exception:
            return
        self._current_row_key = row_key
        self._set_form_state(self._current_rule())
        self._update_action_state()

    def _update_table_cell(self, rule: Rule, column_key: str, value: Any) -> None:
        table = self.query_one("#rules-table", DataTable)
        row_key = _row_key(rule)
        try:
            table.get_row(row_key)
        except Exception:
            self.reload_from_state()
            return
        table.update_cell(row_key, column_key, value)

    @staticmethod
    def _coerce_row_key(value: Any) -> str:
        if hasattr(value, "value"):
            return str(value.value)
        return str(value)
