"""Widget library for the Textual UI."""

from __future__ import annotations

from .new_profile import NewProfileScreen
from .profile_sidebar import ProfileSidebar
from .query_pad import QueryPad
from .status_bar import StatusBar

__all__ = ["NewProfileScreen", "ProfileSidebar", "QueryPad", "StatusBar"]
