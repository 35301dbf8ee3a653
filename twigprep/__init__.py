"""
Protect/restore preprocessing of Twig templates that mix in Vue/Alpine syntax.

Fragments the template grammar can't digest (directive attributes, embedded scripts and styles,
Twig blocks inside tags, ${...} expressions, arrow functions) are replaced with placeholders before parsing,
and restored while the parse tree is printed.
"""

from twigprep.errors import TwigprepError, SyntaxErrorEx, PlaceholderError, FormatterError
from twigprep.ledger import Ledger, PlainText, QuotedValue, EmbeddedContent, MixedDirective
from twigprep.stages import protect, STAGE_NAMES
from twigprep.formatters import Formatters, TwigSafe
from twigprep.printer import Printer
from twigprep.parser import TemplateParser, TemplateTree


def format(source, formatters = None, **config):
    """Shorthand for TemplateParser(**config).format(source, formatters)."""
    return TemplateParser(**config).format(source, formatters)
