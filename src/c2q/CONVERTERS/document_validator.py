"""
Rejects document-level compose features that have no equivalent in the output.
"""

from ..MODELS.compose_document import ComposeDocument, ComposeManaged, ExternallyManaged
from ..exceptions import MissingRequiredFieldError, UnsupportedFeatureError


class DocumentValidator:
    """
    Fail-fast checks run before any conversion begins.
    """
    def validate_for_quadlet(self, document: ComposeDocument):
        """
        Checks a document before converting it into Quadlet files.

        :raises UnsupportedFeatureError: Naming the first unsupported feature found.
        """
        if document.include:
            raise UnsupportedFeatureError("`include` is not supported")
        if document.configs:
            raise UnsupportedFeatureError("`configs` is not supported")
        for name, secret in document.secrets.items():
            if isinstance(secret, ComposeManaged):
                raise UnsupportedFeatureError(
                    f"only external `secrets` are supported, `{name}` is not external"
                )
            if not isinstance(secret, ExternallyManaged):
                raise TypeError(f"unexpected secret resource `{type(secret).__name__}`")
        self._reject_extensions(document)

    def validate_for_kube(self, document: ComposeDocument) -> str:
        """
        Checks a document before converting it into a Kubernetes pod.

        Stricter than :meth:`validate_for_quadlet`: networks and secrets of any
        kind are rejected.

        :return: The document's name, which becomes the pod name.
        :raises UnsupportedFeatureError: Naming the first unsupported feature found.
        :raises MissingRequiredFieldError: If the document has no ``name``.
        """
        for field in ("include", "networks", "configs", "secrets"):
            if getattr(document, field):
                raise UnsupportedFeatureError(f"`{field}` is not supported")
        self._reject_extensions(document)
        return require_name(document, "`name` is required")

    def _reject_extensions(self, document: ComposeDocument):
        if document.extensions:
            names = ", ".join(f"`{name}`" for name in document.extensions)
            raise UnsupportedFeatureError(f"compose extensions are not supported ({names})")


def require_name(document: ComposeDocument, message: str) -> str:
    """
    Returns the document's top-level ``name``.

    :raises MissingRequiredFieldError: With ``message`` if it is absent.
    """
    if not document.name:
        raise MissingRequiredFieldError(message)
    return document.name
