from __future__ import annotations

from typing import Optional

from core.push import PagePush

SCENE_USER = "user"


class LoadContext:
    """Per-request state shared by every widget loader and renderer.

    ``scene`` starts out unset and may only be upgraded, never lowered.
    """

    def __init__(self, request=None, *, user=None, scene: Optional[str] = None):
        self.request = request
        self._user = user
        self.scene = scene
        self.push = PagePush()

    @classmethod
    def for_request(cls, request) -> "LoadContext":
        context = getattr(request, "widget_context", None)
        if context is None:
            context = cls(request)
            request.widget_context = context
        return context

    @property
    def user(self):
        if self._user is not None:
            return self._user
        return getattr(self.request, "user", None)

    @property
    def is_authenticated(self) -> bool:
        user = self.user
        return bool(user is not None and user.is_authenticated)

    @property
    def is_elevated(self) -> bool:
        return self.scene == SCENE_USER or self.is_authenticated

    def escalate(self, scene: Optional[str]) -> None:
        if scene and self.scene != SCENE_USER:
            self.scene = scene
