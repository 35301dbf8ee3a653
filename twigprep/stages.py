"""
Protection stages. Each stage is a pure function (text, context) -> text that replaces fragments of `text`
which the template grammar can't handle with placeholders, registering the originals in `context.ledger`.

Stages must run in the order of STAGES: the earlier ones remove characters (quotes, braces, ampersands)
that would otherwise confuse the later ones, and the later ones never re-match an earlier placeholder.
"""

import re, logging

from twigprep.config import KIND_RAW, KIND_ENTITY, KINDS_EMBEDDED, KIND_ATTR_VALUE, KIND_DIRECTIVE, KIND_DIRECTIVE_VALUE, \
    KIND_EXPRESSION, KIND_ARROW, IN_TAG_VALUE, EXPRESSION_MARKERS, SPECIAL_VALUE_CHARS, DEFAULT_CONTENT_TYPES, \
    ENTITY, DIRECTIVE_PATTERNS, DIRECTIVE_PREFIXES, STYLE_ATTRIBUTES, NAMESPACE_TAIL, NAMESPACE_LOOKBACK
from twigprep.ledger import Ledger, PlainText, QuotedValue, EmbeddedContent, MixedDirective
from twigprep.scanner import comment_regions, Regions, iter_tags, iter_twig_regions, iter_unquoted, find_closing_tag, \
    find_tag_directives, find_matching, find_closing_brace, find_twig_close, brace_depth, collapse_whitespace, state_at

logger = logging.getLogger(__name__)


#####################################################################################################################################################
#####
#####  CONTEXT & UTILITIES
#####

class Context(object):
    """State of a single protection run: the untouched source text and the Ledger that collects placeholders."""

    source = None
    ledger = None

    def __init__(self, source, ledger = None):
        self.source = source
        self.ledger = ledger if ledger is not None else Ledger.for_text(source)

    def placeholder(self, kind, payload):
        return self.ledger.insert(kind, payload)


def apply_edits(text, edits):
    """Apply a list of non-overlapping (start, stop, replacement) edits to `text`."""
    if not edits: return text
    out = []
    pos = 0
    for start, stop, replacement in sorted(edits, key = lambda edit: edit[0]):
        if start < pos:
            raise ValueError(f"overlapping edits at position {start}")
        out.append(text[pos:start])
        out.append(replacement)
        pos = stop
    out.append(text[pos:])
    return ''.join(out)


def has_twig(value):
    return any(marker in value for marker in EXPRESSION_MARKERS)

def is_directive(name):
    """True if an attribute `name` is written in one of Vue/Alpine directive syntaxes."""
    return any(pattern.fullmatch(name) for pattern in DIRECTIVE_PATTERNS)

def is_directive_like(name):
    return name.startswith(DIRECTIVE_PREFIXES)

def in_namespace(text, pos):
    """True if the attribute name at text[pos] is preceded by a reserved namespace prefix, like in xmlns:xlink."""
    return bool(NAMESPACE_TAIL.search(text[max(0, pos - NAMESPACE_LOOKBACK) : pos]))

def quoted_values(text, comments = None):
    """Regions of all quoted attribute values of start tags in `text`."""
    return Regions((attr.value_start, attr.value_end) for tag in iter_tags(text, comments)
                   for attr in tag.attributes if attr.quote)


#####################################################################################################################################################
#####
#####  ATTRIBUTE VALUE PARSERS
#####

def split_declarations(style):
    """Split a style attribute value on semicolons that lie outside quotes, parentheses and Twig tags."""
    parts = []
    start = 0
    depth = 0
    quote = None
    i = 0
    while i < len(style):
        ch = style[i]
        if quote:
            if ch == quote: quote = None
        elif style.startswith(('{{', '{%', '{#'), i):
            end = find_twig_close(style, i)
            if end > 0:
                i = end
                continue
        elif ch in '\'"':
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == ';' and depth <= 0:
            parts.append(style[start:i])
            start = i + 1
        i += 1
    parts.append(style[start:])
    return parts


def parse_style(value):
    """
    Normalized value of a style attribute: declarations stripped and separated with "; ",
    "property: value" spacing in declarations that contain no Twig tags. A trailing semicolon is kept.
    """
    declarations = []
    for decl in split_declarations(value):
        decl = decl.strip()
        if not decl: continue
        if ':' in decl and not has_twig(decl):
            prop, _, val = decl.partition(':')
            decl = f'{prop.strip()}: {val.strip()}'
        declarations.append(decl)

    style = '; '.join(declarations)
    if value.rstrip().endswith(';') and style: style += ';'
    return style


def parse_directive_value(value):
    """Normalized value of a directive attribute: stripped if braces are balanced, otherwise left as is."""
    if brace_depth(value) == (0, 0):
        return value.strip()
    return value


#####################################################################################################################################################
#####
#####  STAGES
#####

def isolate_raw_content(text, ctx):
    """Replace the content of every element marked with v-pre with a single placeholder."""
    edits = []
    resume = 0
    for tag in iter_tags(text):
        if tag.start < resume: continue
        if not any(attr.name == 'v-pre' for attr in tag.attributes): continue
        closing = find_closing_tag(text, tag.name, tag.stop)
        if not closing: continue                    # unterminated, left for the grammar parser to report
        resume = closing.end()
        content = text[tag.stop : closing.start()]
        if content:
            edits.append((tag.stop, closing.start(), ctx.placeholder(KIND_RAW, content)))
    return apply_edits(text, edits)


def protect_entities(text, ctx):
    """Replace character references (&amp; &#160; &#xA0;) outside comments with placeholders."""
    comments = comment_regions(text)
    edits = [(m.start(), m.end(), ctx.placeholder(KIND_ENTITY, m.group()))
             for m in ENTITY.finditer(text) if m.start() not in comments]
    return apply_edits(text, edits)


def isolate_embedded(text, ctx):
    """Replace the content of script and style elements with placeholders that record the content type."""
    edits = []
    for tag in iter_tags(text):
        name = tag.name.lower()
        if name not in KINDS_EMBEDDED: continue
        closing = find_closing_tag(text, tag.name, tag.stop)
        if not closing: continue
        content = text[tag.stop : closing.start()]
        if not content.strip(): continue

        content_type = DEFAULT_CONTENT_TYPES[name]
        for attr in tag.attributes:
            if attr.name.lower() == 'type' and attr.value:
                content_type = attr.value.strip().lower()

        payload = EmbeddedContent(content, content_type, tag = name)
        edits.append((tag.stop, closing.start(), ctx.placeholder(KINDS_EMBEDDED[name], payload)))
    return apply_edits(text, edits)


def isolate_tag_directives(text, ctx):
    """
    Replace Twig comments and balanced {% if %}...{% endif %} blocks that stand between the attributes
    of a start tag with placeholder attributes: <div {% if a %}hidden{% endif %}> becomes <div __data-twig-conditional-0__="1">
    """
    edits = []
    for tag in iter_tags(text):
        for start, stop, kind in find_tag_directives(text, tag.attrs_start, tag.attrs_stop):
            name = ctx.placeholder(kind, text[start:stop])
            edits.append((start, stop, f'{name}="{IN_TAG_VALUE}"'))
    return apply_edits(text, edits)


def isolate_attribute_values(text, ctx):
    """
    Replace double-quoted attribute values that contain Twig tags, or directive values with special characters,
    with placeholders. Style and directive values are normalized on the way; data-* values with {{ }}
    are split into static and expression fragments.
    """
    edits = []
    for tag in iter_tags(text):
        for attr in tag.attributes:
            value = attr.value
            if attr.quote != '"' or not value or ctx.ledger.has(value): continue
            name = attr.name
            twig = has_twig(value)

            if name.lower() in STYLE_ATTRIBUTES and twig:
                payload = PlainText(parse_style(value), original = value)
            elif is_directive_like(name) and (twig or SPECIAL_VALUE_CHARS & set(value)):
                payload = PlainText(parse_directive_value(value), original = value)
            elif name.startswith('data-') and '{{' in value and '{%' not in value and '{#' not in value:
                payload = MixedDirective(MixedDirective.split(value), name = name, original = value)
            elif twig:
                payload = PlainText(value)
            else:
                continue
            edits.append((attr.value_start, attr.value_end, ctx.placeholder(KIND_ATTR_VALUE, payload)))
    return apply_edits(text, edits)


def isolate_directive_names(text, ctx):
    """
    Replace names of directive attributes (@click.prevent, :class, x-on:keyup.enter, v-if, ...) with placeholders.
    Namespaced names like xmlns:xlink and anything inside comments are left untouched.
    """
    edits = []
    for tag in iter_tags(text):
        for attr in tag.attributes:
            if not is_directive(attr.name) or in_namespace(text, attr.name_start): continue
            edits.append((attr.name_start, attr.name_end, ctx.placeholder(KIND_DIRECTIVE, attr.name)))
    return apply_edits(text, edits)


def isolate_directive_values(text, ctx):
    """
    Replace quoted values of directive attributes renamed by isolate_directive_names() with placeholders
    that record the quote to be used on output. Values already replaced by isolate_attribute_values() are skipped.
    """
    edits = []
    for tag in iter_tags(text):
        for attr in tag.attributes:
            if not attr.quote or not ctx.ledger.is_placeholder(attr.name, KIND_DIRECTIVE): continue
            value = attr.value
            if not value or ctx.ledger.has(value): continue

            quote = '"'
            if attr.quote == "'" and '"' in value and "'" not in value:
                quote = "'"

            name = ctx.ledger.get(attr.name).original
            if '{{' in value:
                payload = MixedDirective(MixedDirective.split(value), name = name, quote = quote, original = value)
            else:
                payload = QuotedValue(value, quote)
            edits.append((attr.value_start, attr.value_end, ctx.placeholder(KIND_DIRECTIVE_VALUE, payload)))
    return apply_edits(text, edits)


def protect_expressions(text, ctx):
    """
    Replace ${...} micro-expressions that contain line breaks, whitespace runs or braces with placeholders.
    The payload keeps both the original and a copy with whitespace collapsed outside string literals.
    """
    comments = comment_regions(text)
    values   = quoted_values(text, comments)
    twig     = Regions(iter_twig_regions(text, comments))
    edits = []
    pos = 0
    while True:
        start = text.find('${', pos)
        if start < 0: break
        region = comments.find(start) or values.find(start)
        if region:
            pos = region[1]
            continue
        region = twig.find(start)
        if region and state_at(text, start, region[0]).quote:        # inside a Twig string literal
            pos = start + 2
            continue
        stop = find_closing_brace(text, start + 1)
        if stop < 0:
            pos = start + 2
            continue

        inner = text[start+2 : stop]
        if '\n' in inner or re.search(r'\s\s', inner) or '{' in inner or '}' in inner:
            original = text[start : stop+1]
            payload  = PlainText('${' + collapse_whitespace(inner) + '}', original = original)
            edits.append((start, stop + 1, ctx.placeholder(KIND_EXPRESSION, payload)))
        pos = stop + 1
    return apply_edits(text, edits)


CALL = re.compile(r'\w+\s*\(')

def _contains_arrow(text, start, stop):
    prev = None
    for i, ch in iter_unquoted(text, start, stop):
        if ch == '>' and prev == i - 1 and text[prev] == '=': return True
        prev = i
    return False

def _arrow_start(text, pos, start):
    """Start of the parameter list of an arrow function whose "=>" token is at text[pos]."""
    i = pos
    while i > start and text[i-1].isspace(): i -= 1
    if i > start and text[i-1] == ')':
        depth = 0
        while i > start:
            i -= 1
            if text[i] == ')': depth += 1
            elif text[i] == '(':
                depth -= 1
                if depth == 0: return i
        return -1
    end = i
    while i > start and (text[i-1].isalnum() or text[i-1] in '_$'): i -= 1
    return i if i < end else -1

def _arrow_stop(text, pos, stop):
    """End of the body of an arrow function whose "=>" token is at text[pos]: a top-level | , ) } or `stop`."""
    depth = 0
    for i, ch in iter_unquoted(text, pos + 2, stop):
        if ch in '([{':
            depth += 1
        elif depth and ch in ')]}':
            depth -= 1
        elif depth == 0 and ch in '|,)}]':
            stop = i
            break
    while stop > pos + 2 and text[stop-1].isspace(): stop -= 1
    return stop

def find_arrow_functions(text, start, stop):
    """
    Spans of arrow function literals inside text[start:stop], which is the body of a Twig tag.
    Arguments of calls like filter(x => x.ok) are taken as a whole first, then remaining bare arrows.
    """
    spans = []
    claimed = []
    for match in CALL.finditer(text, start, stop):
        paren = match.end() - 1
        if any(a <= paren < b for a, b in claimed): continue
        close = find_matching(text, paren)
        if close < 0 or close >= stop or not _contains_arrow(text, paren + 1, close): continue
        inner = text[paren+1 : close]
        first = paren + 1 + len(inner) - len(inner.lstrip())
        last  = close - (len(inner) - len(inner.rstrip()))
        spans.append((first, last))
        claimed.append((paren, close + 1))

    prev = None
    for i, ch in list(iter_unquoted(text, start, stop)):
        arrow = ch == '>' and prev == i - 1 and text[prev] == '='
        prev = i
        if not arrow or any(a <= i - 1 < b for a, b in claimed): continue

        first = _arrow_start(text, i - 1, start)
        if first < 0: continue
        last = _arrow_stop(text, i - 1, stop)
        if any(first < b and a < last for a, b in claimed): continue
        spans.append((first, last))
        claimed.append((first, last))
    return spans

def protect_arrow_functions(text, ctx):
    """Replace arrow function literals inside {{ }} and {% %} tags with placeholders."""
    edits = []
    for start, stop in iter_twig_regions(text):
        body_start = start + 2
        body_stop  = stop - 2
        if text[body_start : body_start+1] == '-': body_start += 1
        if body_stop > body_start and text[body_stop-1] == '-': body_stop -= 1

        for first, last in find_arrow_functions(text, body_start, body_stop):
            edits.append((first, last, ctx.placeholder(KIND_ARROW, text[first:last])))
    return apply_edits(text, edits)


def normalize_quotes(text, ctx):
    """Rewrite single-quoted attribute values that contain no quotes nor braces to double-quoted form."""
    edits = []
    for tag in iter_tags(text):
        for attr in tag.attributes:
            value = attr.value
            if attr.quote != "'" or ctx.ledger.has(value): continue
            if any(ch in value for ch in '\'"{}'): continue
            edits.append((attr.value_start - 1, attr.value_end + 1, f'"{value}"'))
    return apply_edits(text, edits)


#####################################################################################################################################################

# canonical order of stages, as (name, function) pairs
STAGES = [
    ('raw_content',         isolate_raw_content),
    ('entities',            protect_entities),
    ('embedded',            isolate_embedded),
    ('tag_directives',      isolate_tag_directives),
    ('attribute_values',    isolate_attribute_values),
    ('directive_names',     isolate_directive_names),
    ('directive_values',    isolate_directive_values),
    ('expressions',         protect_expressions),
    ('arrow_functions',     protect_arrow_functions),
    ('quotes',              normalize_quotes),
]
STAGE_NAMES = [name for name, _ in STAGES]


def protect(source, stages = None, ledger = None):
    """
    Run protection stages over `source` and return a pair: (sanitized text, Ledger).
    :param stages: names of stages to be run, a subset of STAGE_NAMES; stages always run in canonical order
    """
    if stages is not None:
        unknown = set(stages) - set(STAGE_NAMES)
        if unknown: raise ValueError(f"unknown protection stages: {', '.join(sorted(unknown))}")

    ctx  = Context(source, ledger)
    text = source
    for name, stage in STAGES:
        if stages is not None and name not in stages: continue
        count = len(ctx.ledger)
        text = stage(text, ctx)
        logger.debug("stage %s created %s placeholder(s)", name, len(ctx.ledger) - count)

    return text, ctx.ledger
