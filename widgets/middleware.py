import logging

from .context import LoadContext

logger = logging.getLogger(__name__)

BODY_CLOSE = "</body>"


class WidgetAssetsMiddleware:
    """Attach a LoadContext to each request and stage widget browser assets.

    After the view has produced an HTML page, every registered widget type
    stages its bundles and its browser singleton, and the result is inserted
    just before ``</body>``.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        from .registry import registry

        context = LoadContext.for_request(request)
        response = self.get_response(request)

        if not self._is_html_page(response):
            return response

        for manager in registry:
            manager.on_page_response(context)

        charset = response.charset or "utf-8"
        try:
            content = response.content.decode(charset)
        except UnicodeDecodeError:
            logger.warning("Not injecting widget assets into %s: body is not valid %s", request.path, charset)
            return response
        index = content.rfind(BODY_CLOSE)
        if index == -1:
            return response
        content = content[:index] + str(context.push.render()) + content[index:]
        response.content = content.encode(charset)
        if response.has_header("Content-Length"):
            response["Content-Length"] = str(len(response.content))
        logger.debug("Staged browser singletons for %s", ", ".join(context.push.singletons) or "no widget types")
        return response

    @staticmethod
    def _is_html_page(response) -> bool:
        if getattr(response, "streaming", False):
            return False
        if response.status_code != 200:
            return False
        return response.get("Content-Type", "").startswith("text/html")
