from netshell.template.engine import Template, TemplateEngine
from netshell.template.parser import Interpolation, Loop, TemplateParser, Text

__all__ = ["Template", "TemplateEngine", "TemplateParser", "Text", "Interpolation", "Loop"]
