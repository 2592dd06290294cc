# commons/renderers.py

from rest_framework.renderers import JSONRenderer


class EnvelopeJSONRenderer(JSONRenderer):
    """
    Envelope único de sucesso: {"success": true, "data": ...}.

    Respostas de erro já chegam montadas pelo envelope_exception_handler
    e passam sem alteração.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        renderer_context = renderer_context or {}
        response = renderer_context.get("response")

        if response is None or response.status_code >= 400:
            return super().render(data, accepted_media_type, renderer_context)

        if response.status_code == 204 and data is None:
            return b""

        return super().render(
            {"success": True, "data": data},
            accepted_media_type,
            renderer_context,
        )
