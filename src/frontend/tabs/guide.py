"""Guide tab with a short reference for rule types."""

from __future__ import annotations

from textual.containers import Container
from textual.widgets import Static

GUIDE_TEXT = """\
Rules are stored one per row in the rules CSV file.

named-activity
  The role is given while the member plays a game whose name contains one of
  the listed activities (case-insensitive). A member can hold several of these.

else
  The default role of a guild. It is given when the member plays something but
  no named-activity rule matched. At most one per guild, with no activities.

A member who plays nothing loses every managed role. Roles that have no rule
are never touched.

ctrl+s saves, ctrl+r reloads from disk, q quits.
"""


class GuideTab(Container):
    def compose(self):
        yield Static(GUIDE_TEXT, classes="guide")
