"""
Parsing of Twig/HTML templates that contain Vue/Alpine syntax.

The source is first sanitized by the protection stages (see stages.py), then parsed with the Parsimonious
grammar from grammar.py, and rewritten into a tree of NODES.x* classes. The tree carries the original source
and the Ledger as attachments, which are needed later by the Printer to restore protected fragments.
"""

import re

from twigprep.config import KINDS_IN_TAG, EXPRESSION_MARKERS, WHITESPACE_ATTRIBUTES
from twigprep.grammar import Grammar
from twigprep.parsing import ParsimoniousTree as BaseTree
from twigprep.restore import expand, restore_token, select_quote
from twigprep.stages import protect
from twigprep.structs import Flags
from twigprep.printer import Printer


#####################################################################################################################################################
#####
#####  UTILITIES
#####

def line_indent(text, pos):
    """Leading whitespace of the line that contains position `pos` of `text`."""
    start = text.rfind('\n', 0, pos) + 1
    return re.match(r'[ \t]*', text[start:]).group()


#####################################################################################################################################################
#####
#####  NODES
#####

class NODES(object):
    """A lexical container for definitions of all template tree node classes."""

    class node(BaseTree.node):
        """Generic node: concatenation of its children, or its own text with placeholders restored if it's a leaf."""

        def render(self, state):
            if self.children:
                return ''.join(c.render(state) for c in self.children)
            return expand(state, self.text())

    class xtext(node):
        def render(self, state):
            return expand(state, self.text(), line_indent(self.fulltext, self.pos[0]))

    class xplaceholder(node):
        """Placeholder inside a Twig expression, like an arrow function: restored literally."""
        def render(self, state):
            return restore_token(state, self.text())

    class xtwig_string(node):
        """String literal inside a Twig expression. Quotes are chosen anew for the restored content."""

        def render(self, state):
            content = expand(state, self.text()[1:-1])
            if '#{' in content:                     # interpolated in "..." but literal in '...'
                quote = self.text()[0]
            else:
                quote = select_quote(content, state.config['quote_char'], state.flags.get(Flags.OVERRIDE_QUOTE_CHAR))
            return quote + content + quote


    ###  ATTRIBUTES  ###

    class attribute(node):
        name  = None            # <attr_name> node
        value = None            # <value_*> node, or None

        def setup(self):
            self.name = self.children[0]
            assert self.name.type == 'attr_name'

        def directive(self, state):
            """The Twig block that this attribute was substituted for inside a tag, or None."""
            if state.ledger.is_placeholder(self.name.text(), KINDS_IN_TAG):
                return expand(state, state.ledger.get(self.name.text()).original)
            return None

    class xattr_flag(attribute):
        def render(self, state):
            directive = self.directive(state)
            if directive is not None: return directive
            return self.name.render(state)

    class xattr_named(attribute):
        equals = None

        def setup(self):
            super(NODES.xattr_named, self).setup()
            self.equals = self.children[1]
            self.value  = self.children[2]

        def render(self, state):
            # name is resolved first: the whole attribute may stand for a Twig block
            directive = self.directive(state)
            if directive is not None: return directive
            name = self.name.render(state)

            position = state.flags.position()
            payload = state.ledger.get(self.value.content())
            quote = getattr(payload, 'quote', None)
            if quote:
                state.flags.push(Flags.OVERRIDE_QUOTE_CHAR, quote)
            if state.config.get('collapse_attribute_whitespace') and name.lower() in WHITESPACE_ATTRIBUTES \
               and self.value.is_static(state):
                state.flags.push(Flags.COLLAPSE_WHITESPACE, True)

            value = self.value.render(state)
            state.flags.reset(position)
            return name + self.equals.text() + value

    class value(node):
        """Attribute value. Its content is restored in the IN_ATTRIBUTE context."""
        quoted = True

        def content(self):
            """Text of the value without quotes, as it occurs in the sanitized source."""
            text = self.text()
            return text[1:-1] if self.quoted else text

        def is_static(self, state):
            """True if the value holds neither placeholders nor Twig tags."""
            content = self.content()
            return not state.ledger.find_all(content) and not any(marker in content for marker in EXPRESSION_MARKERS)

        def render_content(self, state):
            parts = self.children[1:-1] if self.quoted else self.children
            return ''.join(c.render(state) for c in parts)

        def render(self, state):
            position = state.flags.position()
            state.flags.push(Flags.IN_ATTRIBUTE, True)
            content = self.render_content(state)
            if state.flags.get(Flags.COLLAPSE_WHITESPACE, False):
                content = ' '.join(content.split())
            if self.quoted:
                quote = select_quote(content, state.config['quote_char'], state.flags.get(Flags.OVERRIDE_QUOTE_CHAR))
                content = quote + content + quote
            state.flags.reset(position)
            return content

    class xvalue_dq(value): pass
    class xvalue_sq(value): pass

    class xvalue_unq(value):
        quoted = False


#####################################################################################################################################################
#####
#####  TREE & PARSER
#####

class TemplateTree(BaseTree):
    """
    Parse tree of a sanitized template, with two attachments for the printing phase:
    the original source text and the Ledger of protected fragments.
    """

    NODES  = NODES              # must tell the BaseTree's rewriting routine where node classes can be found
    node   = NODES.node         # class of generic nodes

    ###  Configuration of rewriting process  ###

    # nodes that will be replaced with a list of their children
    _reduce_  = "item print_token block_token hash_token attribute attr_value value_part unquoted_part"

    # nodes that will be replaced with their child if there is exactly 1 child after rewriting
    _compact_ = "print_expression block_expression"

    ###  Attachments  ###

    original = None             # source text before protection
    ledger   = None             # Ledger filled in by protection stages

    def __init__(self, text, original = None, ledger = None):
        """
        :param text: sanitized text, as returned by stages.protect()
        :param original: source text before protection
        :param ledger: Ledger of placeholders that occur in `text`
        """
        self.original = original
        self.ledger = ledger
        self.parser = Grammar.get_parser(ledger.marker) if ledger is not None else Grammar.get_parser()
        super(TemplateTree, self).__init__(text)


class TemplateParser(object):
    """
    Facade of the whole pipeline: protection, parsing, and printing with restoration.

    >>> TemplateParser().format('<button @click.prevent="open = !open">Menu</button>')
    '<button @click.prevent="open = !open">Menu</button>'
    """

    config_default = {
        'stages':               None,               # names of protection stages to run, None for all; see stages.STAGE_NAMES
    }
    config_default.update(Printer.config_default)
    config = None

    formatters = None           # default sub-formatters, a Formatters instance

    def __init__(self, formatters = None, **config):
        self.formatters = formatters
        self.config = self.config_default.copy()
        self.config.update(**config)

    def parse(self, source):
        """Protect `source` and parse the sanitized text. Return a TemplateTree."""
        text, ledger = protect(source, self.config['stages'])
        return TemplateTree(text, source, ledger)

    def format(self, source, formatters = None):
        """Parse `source` and print it back, with protected fragments restored and embedded content formatted."""
        tree = self.parse(source)
        config = {key: value for key, value in self.config.items() if key in Printer.config_default}
        printer = Printer(tree.ledger, formatters or self.formatters, **config)
        return printer.print(tree)
