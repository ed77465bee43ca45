from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from django import forms
from django.core.serializers.json import DjangoJSONEncoder
from django.templatetags.static import static
from django.utils.html import format_html, format_html_join, json_script
from django.utils.safestring import SafeString, mark_safe

logger = logging.getLogger(__name__)

WHEN_ALWAYS = "always"
WHEN_USER = "user"
BROWSER_NAMESPACE = "widgets"


@dataclass(frozen=True)
class Bundle:
    owner: str
    tier: str
    path: str
    when: str


class AssetRegistry:
    """Process-wide list of browser script bundles declared by widget types."""

    def __init__(self):
        self._bundles: dict[tuple[str, str], Bundle] = {}

    def add(self, owner: str, tier: str, *, when: str) -> bool:
        key = (owner, tier)
        if key in self._bundles:
            return False
        self._bundles[key] = Bundle(owner=owner, tier=tier, path=f"widgets/{owner}/{tier}.js", when=when)
        logger.debug("Declared %s bundle for %s (when=%s)", tier, owner, when)
        return True

    def bundles(self, owner: str | None = None) -> list[Bundle]:
        return [b for b in self._bundles.values() if owner is None or b.owner == owner]

    def media(self, owner: str, *, elevated: bool) -> forms.Media:
        paths = [
            static(b.path)
            for b in self.bundles(owner)
            if b.when == WHEN_ALWAYS or (elevated and b.when == WHEN_USER)
        ]
        return forms.Media(js=paths)


class PagePush:
    """Everything a single page response must carry for browser-side widget behavior."""

    def __init__(self):
        self.media = forms.Media()
        self.definitions: dict[str, dict] = {}
        self.singletons: dict[str, dict] = {}

    def add_media(self, media: forms.Media) -> None:
        self.media = self.media + media

    def define(self, name: str, extend: str = BROWSER_NAMESPACE) -> None:
        self.definitions.setdefault(name, {"extend": extend})

    def create_singleton(self, name: str, options: dict) -> bool:
        if name in self.singletons:
            return False
        self.singletons[name] = options
        return True

    def render(self) -> SafeString:
        parts = [self.media.render()]
        for name, options in self.singletons.items():
            parts.append(json_script(options, f"widget-singleton-{name}", encoder=DjangoJSONEncoder))
        if self.definitions or self.singletons:
            # Names are registry-validated slugs, so their JSON form is safe inside <script>.
            script = format_html_join(
                "\n",
                "{}.define({}, {});",
                (
                    (BROWSER_NAMESPACE, mark_safe(json.dumps(name)), mark_safe(json.dumps(definition)))
                    for name, definition in self.definitions.items()
                ),
            )
            creates = format_html_join(
                "\n",
                '{}.create({}, JSON.parse(document.getElementById("widget-singleton-{}").textContent));',
                ((BROWSER_NAMESPACE, mark_safe(json.dumps(name)), name) for name in self.singletons),
            )
            parts.append(format_html("<script>\n{}\n{}\n</script>", script, creates))
        return mark_safe("\n".join(str(part) for part in parts if part))
