"""Exceptions raised by the export pipeline."""


class ExportError(Exception):
    """Base exception for export failures."""
    pass


class TemplateRenderError(ExportError):
    """A user-supplied template failed; the whole export run stops."""

    def __init__(self, document_name: str, template_path: str, cause: Exception):
        super().__init__(f"Template '{template_path}' failed for '{document_name}': {cause}")
        self.document_name = document_name
        self.template_path = template_path
        self.cause = cause


__all__ = ['ExportError', 'TemplateRenderError']
