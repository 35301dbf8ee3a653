"""
Restoration of placeholders during printing. Every leaf of the parse tree is passed through expand(),
which replaces placeholder ids with their final text, according to the payload variant:

- character references: restored verbatim, or decoded if configured so for the current context
- raw content (v-pre): verbatim, without any further processing
- embedded script/style content: passed through a sub-formatter, optionally re-indented
- mixed directives: reassembled fragment by fragment
- everything else: the recorded text, with nested placeholders expanded

An id-shaped token that is missing from the Ledger is emitted literally.
"""

import re, textwrap

from twigprep.config import KIND_ENTITY, KIND_RAW, KIND_EXPRESSION
from twigprep.ledger import EmbeddedContent, MixedDirective
from twigprep.structs import Flags


NUMERIC_ENTITY = re.compile(r'&#(?:([0-9]+)|[xX]([0-9a-fA-F]+));')

#####################################################################################################################################################
#####
#####  QUOTES & ENTITIES
#####

def is_unmasked(text, pos):
    """True if the character at text[pos] is not escaped with a backslash (an odd number of preceding backslashes)."""
    count = 0
    while pos - count > 0 and text[pos - count - 1] == '\\':
        count += 1
    return count % 2 == 0

def contains_unmasked(text, char):
    return any(ch == char and is_unmasked(text, i) for i, ch in enumerate(text))

def select_quote(text, default = '"', override = None):
    """
    Quote character to enclose `text` with: the `override` if given; otherwise double quote if `text`
    contains an unmasked single quote; single quote if it contains an unmasked double quote; `default` otherwise.
    """
    if override: return override
    if contains_unmasked(text, "'"): return '"'
    if contains_unmasked(text, '"'): return "'"
    return default


def decode_entities(text):
    """Replace numeric character references (&#160; &#xA0;) with the characters they stand for; invalid ones are kept."""
    def decode(match):
        dec, hexa = match.groups()
        try:
            return chr(int(dec) if dec else int(hexa, 16))
        except (ValueError, OverflowError):
            return match.group()
    return NUMERIC_ENTITY.sub(decode, text)


def reindent(code, indent, outer = ''):
    """
    Strip `code`, remove its common indentation and re-indent every non-empty line with `indent`.
    The result is framed with line breaks, the closing one followed by `outer` indentation.
    """
    code = textwrap.dedent(code.strip('\n')).strip()
    if not code: return ''
    lines = [indent + line if line.strip() else '' for line in code.split('\n')]
    return '\n' + '\n'.join(lines) + '\n' + outer


#####################################################################################################################################################
#####
#####  RESTORATION
#####

def expand(state, text, indent = None):
    """
    Replace all placeholders in `text` with their restored content.
    :param indent: indentation of the line where `text` occurs; used for re-indenting embedded content
    """
    return state.ledger.pattern.sub(lambda match: restore_token(state, match.group(), indent), text)


def restore_token(state, token, indent = None):
    payload = state.ledger.get(token)
    if payload is None: return token
    return restore_payload(state, payload, indent)


def restore_payload(state, payload, indent = None):
    """Final text of a given ledger `payload`."""

    if isinstance(payload, EmbeddedContent):
        return restore_embedded(state, payload, indent)
    if isinstance(payload, MixedDirective):
        return reassemble(state, payload)

    if payload.kind == KIND_ENTITY:
        mode = state.config.get('decode_entities')
        if mode == 'all' or (mode == 'attributes' and state.flags.get(Flags.IN_ATTRIBUTE, False)):
            return decode_entities(payload.original)
        return payload.original

    if payload.kind == KIND_RAW:
        return payload.text

    if payload.kind == KIND_EXPRESSION and not state.config.get('collapse_expressions', True):
        return expand(state, payload.original)

    return expand(state, payload.text, indent)


def restore_embedded(state, payload, indent = None):
    """Content of a script/style element: formatted with a sub-formatter if one is available, then re-indented if configured."""
    content = expand(state, payload.text)
    if state.formatters is not None:
        content = state.formatters.format_embedded(content, payload.content_type)

    unit = state.config.get('embedded_indent')
    if unit is None: return content
    indent = indent or ''
    return reindent(content, indent + unit, indent)


def reassemble(state, payload):
    """Text of a MixedDirective: static fragments and {{ }} expressions concatenated in their original order."""
    out = []
    for part in payload.parts:
        value = expand(state, part.value)
        out.append('{{' + value + '}}' if part.expression else value)
    return ''.join(out)
