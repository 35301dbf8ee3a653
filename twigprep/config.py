"""
Global constants of the preprocessing pipeline: placeholder kinds, directive syntaxes,
namespace prefixes and content types of embedded script/style elements.
"""

import re


#####################################################################################################################################################
#####
#####  PLACEHOLDER KINDS
#####

# kind name of a placeholder is embedded in its id: <marker><kind>-<number><marker>;
# kind names must consist of lowercase letters and single dashes only, see Ledger.KIND

KIND_RAW            = 'v-pre-content'           # inner content of an element marked with v-pre
KIND_ENTITY         = 'html-entity'             # numeric or named character reference
KIND_SCRIPT         = 'script-content'          # inner content of <script>
KIND_STYLE          = 'style-content'           # inner content of <style>
KIND_COMMENT        = 'data-twig-comment'       # {# ... #} inside a start tag, replaced with an attribute
KIND_CONDITIONAL    = 'data-twig-conditional'   # {% if %}...{% endif %} inside a start tag, replaced with an attribute
KIND_ATTR_VALUE     = 'twig-attr-value'         # attribute value with Twig markers or directive syntax
KIND_DIRECTIVE      = 'data-vue-alpine'         # Vue/Alpine directive name: @click, :class, x-on:..., v-if
KIND_DIRECTIVE_VALUE = 'vue-alpine-value'       # value of a directive attribute, with the original quote recorded
KIND_EXPRESSION     = 'vue-expression'          # ${...} micro-expression
KIND_ARROW          = 'twig-arrow-func'         # arrow function literal inside a Twig expression

KINDS_EMBEDDED      = {'script': KIND_SCRIPT, 'style': KIND_STYLE}
KINDS_IN_TAG        = (KIND_COMMENT, KIND_CONDITIONAL)      # placeholders that stand for a whole attribute

KINDS = (KIND_RAW, KIND_ENTITY, KIND_SCRIPT, KIND_STYLE, KIND_COMMENT, KIND_CONDITIONAL, KIND_ATTR_VALUE,
         KIND_DIRECTIVE, KIND_DIRECTIVE_VALUE, KIND_EXPRESSION, KIND_ARROW)

PLACEHOLDER_MARKER  = '__'                      # default delimiter on both sides of a placeholder id

# value assigned to an attribute that replaces a Twig block inside a start tag
IN_TAG_VALUE        = '1'


#####################################################################################################################################################
#####
#####  MARKUP SYNTAX
#####

EXPRESSION_MARKERS  = ('{{', '{%', '{#')        # openers of Twig expressions, statements and comments

TWIG_DELIMITERS     = {'{{': '}}', '{%': '%}', '{#': '#}'}

# characters that make a directive value unsafe for the grammar parser
SPECIAL_VALUE_CHARS = set(';:|&=><(){}[]')

EMBEDDED_TAGS       = ('script', 'style')       # elements whose content is a foreign language

# `type` attribute of an embedded element -> language of a sub-formatter
CONTENT_TYPES = {
    'text/javascript':          'javascript',
    'application/javascript':   'javascript',
    'module':                   'javascript',
    'text/css':                 'css',
}

# content type assumed when the `type` attribute is missing
DEFAULT_CONTENT_TYPES = {
    'script':   'text/javascript',
    'style':    'text/css',
}

# Twig conditional blocks inside a start tag
IF_OPEN             = re.compile(r'\{%-?\s*if\s')
IF_CLOSE            = re.compile(r'\{%-?\s*endif\s*-?%\}')

ENTITY              = re.compile(r'&#[0-9]+;|&#[xX][0-9a-fA-F]+;|&[a-zA-Z][a-zA-Z0-9]*;')


#####################################################################################################################################################
#####
#####  DIRECTIVES
#####

# Vue/Alpine directive names, most specific forms first; each pattern must match a whole attribute name
DIRECTIVE_PATTERNS = [re.compile(pat) for pat in (
    r'v-on:[\w-]+(?:\.[\w-]+)*',                                                    # v-on:click.prevent
    r'v-bind:[\w-]+(?:\.[\w-]+)*',                                                  # v-bind:class
    r'v-(?:if|else-if|else|for|show|model|text|html|cloak|once|memo|slot|key|ref|is|bind)(?:\.[\w-]+)*',
    r'x-on:[\w-]+(?:\.[\w-]+)*',                                                    # x-on:keydown.enter
    r'x-[\w-]+(?::[\w-]+)?(?:\.[\w-]+)*',                                           # x-data, x-bind:class, x-model.lazy
    r'@[\w-]+(?::[\w-]+)?(?:\.[\w-]+)*',                                            # @click.outside
    r':(?!xmlns)[\w-]+(?:\.[\w-]+)*',                                               # :class
)]

# attribute prefixes of namespaced names that are never directives, even though they contain a colon
NAMESPACE_PREFIXES  = ('xmlns', 'xml', 'xlink', 'svg', 'xsi', 'rdf', 'rdfs', 'dc', 'xs', 'xsd')
NAMESPACE_LOOKBACK  = 10                        # no. of characters before a name that are checked for a namespace prefix
NAMESPACE_TAIL      = re.compile(r'\b(?:%s)$' % '|'.join(NAMESPACE_PREFIXES))

DIRECTIVE_PREFIXES  = ('@', ':', 'x-', 'v-')

STYLE_ATTRIBUTES    = ('style',)

# attributes whose static values may have their whitespace collapsed when printed
WHITESPACE_ATTRIBUTES = ('id', 'class', 'type')
