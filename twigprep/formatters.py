"""
Sub-formatters for the content of embedded <script> and <style> elements.

A sub-formatter is any callable: format(code) -> code. It may raise an exception, in which case
the content is emitted unformatted (stripped) and a warning is logged.
"""

import re, logging

from twigprep.config import CONTENT_TYPES
from twigprep.errors import FormatterError

logger = logging.getLogger(__name__)


#####################################################################################################################################################
#####
#####  TWIG PROTECTION INSIDE CODE
#####

# Twig tags in the order they're protected: statements first, as they can contain the other two
TWIG_IN_CODE = [re.compile(r'\{%.*?%\}', re.S), re.compile(r'\{\{.*?\}\}', re.S), re.compile(r'\{#.*?#\}', re.S)]

# Twig tags in positions where a string literal placeholder would produce invalid JavaScript
COMPLEX_TWIG = [
    re.compile(r'=\s*\{%.*?%\}'),               # assignment of a Twig statement
    re.compile(r'\{%.*?%\}\s*\{.*?\}'),          # Twig statement followed by an object
    re.compile(r'\{\{.*?\}\}\s*\{.*?\}'),        # Twig expression followed by an object
    re.compile(r'\{%.*?%\}\s*\[.*?\]'),          # Twig statement followed by an array
    re.compile(r'\{\{.*?\}\}\s*\[.*?\]'),        # Twig expression followed by an array
]

def has_complex_twig_expressions(code):
    return any(pattern.search(code) for pattern in COMPLEX_TWIG)

def has_twig_in_css(code):
    return any(pattern.search(code) for pattern in TWIG_IN_CODE)


def protect_twig_expressions(code):
    """
    Replace Twig tags in `code` with string literals "__TWIG_EXPR_<n>__" that keep JavaScript code valid.
    Return a pair: (protected code, dict of {placeholder: original}).
    """
    replacements = {}

    def replace(match):
        placeholder = f'"__TWIG_EXPR_{len(replacements)}__"'
        replacements[placeholder] = match.group()
        return placeholder

    for pattern in TWIG_IN_CODE:
        code = pattern.sub(replace, code)
    return code, replacements


def restore_twig_expressions(code, replacements):
    for placeholder, original in replacements.items():
        code = code.replace(placeholder, original)
    return code


class TwigSafe(object):
    """
    Wrapper around an external formatter that hides Twig tags from it. Code with Twig tags in positions
    that can't be hidden (any Twig tag at all, if css=True) is returned stripped, without formatting.
    Raises FormatterError if the formatter drops or alters any of the hidden tags.
    """
    def __init__(self, formatter, css = False):
        self.formatter = formatter
        self.css = css

    def __call__(self, code):
        if has_complex_twig_expressions(code) or (self.css and has_twig_in_css(code)):
            return code.strip()

        protected, replacements = protect_twig_expressions(code)
        formatted = self.formatter(protected)
        missing = [p for p in replacements if p not in formatted]
        if missing:
            raise FormatterError(f"formatter lost {len(missing)} Twig expression(s), first one: {replacements[missing[0]]!r}")
        return restore_twig_expressions(formatted, replacements)


#####################################################################################################################################################
#####
#####  REGISTRY
#####

class Formatters(object):
    """
    Sub-formatters indexed by language: "javascript", "css", ... Content types of embedded elements
    are mapped to languages through `types`, by default config.CONTENT_TYPES.
    """
    formatters = None           # dict of {language: callable}
    types      = None           # dict of {content type: language}

    def __init__(self, formatters = None, types = None, **kwformatters):
        self.formatters = dict(formatters or {})
        self.formatters.update(kwformatters)
        self.types = dict(CONTENT_TYPES if types is None else types)

    def register(self, language, formatter):
        self.formatters[language] = formatter

    def resolve(self, content_type):
        """Formatter for a given content type, or None if there's none."""
        if content_type is None: return None
        content_type = content_type.lower()
        language = self.types.get(content_type, content_type)
        return self.formatters.get(language)

    def format_embedded(self, content, content_type):
        """
        Format `content` of a given type. Content with no formatter is returned as is;
        if the formatter fails, the stripped content is returned and a warning is logged.
        """
        formatter = self.resolve(content_type)
        if formatter is None:
            return content
        try:
            return formatter(content)
        except Exception as ex:
            logger.warning("failed to format %s content: %s", content_type, ex)
            return content.strip()

    @classmethod
    def twig_safe(cls, javascript = None, css = None, **kwformatters):
        """Registry where `javascript` and `css` formatters are wrapped with TwigSafe."""
        formatters = cls(**kwformatters)
        if javascript: formatters.register('javascript', TwigSafe(javascript))
        if css: formatters.register('css', TwigSafe(css, css = True))
        return formatters
