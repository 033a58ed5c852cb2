"""Dropkick CLI package."""

from .models import CheckoutResult, Kicklet, ProjectConfig, SourceFile, Template
from .template_store import TemplateStore

__version__ = "0.1.0"

__all__ = ['CheckoutResult', 'Kicklet', 'ProjectConfig', 'SourceFile', 'Template', 'TemplateStore']
