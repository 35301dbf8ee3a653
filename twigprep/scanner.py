"""
Character-level scanners used by the rewriting stages: quote/comment/brace state tracking,
Twig delimiters, start tags and their attributes.

All functions are pure and keep no state between calls. Quote state flips only on a quote character
that is not preceded by a backslash; braces inside quotes do not change the brace depth.
"""

import re
from bisect import bisect_right
from collections import namedtuple

from twigprep.config import IF_OPEN, IF_CLOSE, KIND_COMMENT, KIND_CONDITIONAL, TWIG_DELIMITERS, EMBEDDED_TAGS


QUOTES      = '\'"`'
WHITESPACE  = ' \t\n\r\f'
NAME_STOP   = set(WHITESPACE + '"\'<>/=')

COMMENT_OPEN = re.compile(r'<!--|\{#')
TWIG_OPEN    = re.compile(r'\{[{%#]')
TAG_OPEN     = re.compile(r'<[a-zA-Z]')
TAG_NAME     = re.compile(r'[a-zA-Z][^\s/>{}]*')


#####################################################################################################################################################
#####
#####  REGIONS
#####

class Regions(object):
    """Sorted list of non-overlapping [start, stop) spans of text, with fast lookup of the span containing a position."""

    def __init__(self, spans = ()):
        self.spans  = sorted(spans)
        self.starts = [start for start, _ in self.spans]

    def find(self, pos):
        """The (start, stop) span that contains `pos`, or None."""
        idx = bisect_right(self.starts, pos) - 1
        if idx < 0: return None
        start, stop = self.spans[idx]
        return (start, stop) if pos < stop else None

    def __contains__(self, pos):
        return self.find(pos) is not None

    def __iter__(self):
        return iter(self.spans)

    def __len__(self):
        return len(self.spans)


def comment_regions(text):
    """
    Regions of HTML comments <!--...--> and Twig comments {#...#}.
    An unterminated comment extends to the end of `text`.
    """
    spans = []
    pos = 0
    while True:
        match = COMMENT_OPEN.search(text, pos)
        if not match: break
        start = match.start()
        close = '-->' if match.group() == '<!--' else '#}'
        end = text.find(close, match.end())
        stop = len(text) if end < 0 else end + len(close)
        spans.append((start, stop))
        pos = stop
    return Regions(spans)


#####################################################################################################################################################
#####
#####  QUOTES & BRACES
#####

ScanState = namedtuple('ScanState', 'comment quote depth')      # comment: None, 'html' or 'twig'; quote: None or a quote char


def state_at(text, pos, start = 0):
    """
    State of the scanner right before position `pos`, when scanning `text` from `start`:
    inside an HTML or Twig comment, inside a single- or double-quoted string, and the brace depth.
    """
    comment = None
    quote   = None
    depth   = 0
    i = start
    while i < pos:
        if comment:
            close = '-->' if comment == 'html' else '#}'
            if text.startswith(close, i):
                comment = None
                i += len(close)
                continue
        elif quote:
            if text[i] == '\\':
                i += 2
                continue
            if text[i] == quote:
                quote = None
        elif text.startswith('<!--', i):
            comment = 'html'
            i += 4
            continue
        elif text.startswith('{#', i):
            comment = 'twig'
            i += 2
            continue
        elif text[i] == '\\':
            i += 2
            continue
        elif text[i] in '\'"':
            quote = text[i]
        elif text[i] == '{':
            depth += 1
        elif text[i] == '}':
            depth -= 1
        i += 1
    return ScanState(comment, quote, depth)


def iter_unquoted(text, start = 0, stop = None):
    """
    Generate (position, character) pairs of all characters of text[start:stop] that lie outside quoted strings.
    Quote characters themselves and escaped characters are not generated.
    """
    stop  = len(text) if stop is None else stop
    quote = None
    i = start
    while i < stop:
        ch = text[i]
        if ch == '\\':
            i += 2
            continue
        if quote:
            if ch == quote: quote = None
        elif ch in QUOTES:
            quote = ch
        else:
            yield i, ch
        i += 1


def find_matching(text, pos, opening = '(', closing = ')'):
    """
    Position of the bracket that closes the one at text[pos], or -1 if unbalanced.
    Brackets inside quoted strings are ignored.
    """
    if text[pos] != opening:
        raise ValueError(f"no {opening!r} at position {pos}")
    depth = 0
    for i, ch in iter_unquoted(text, pos):
        if ch == opening:
            depth += 1
        elif ch == closing:
            depth -= 1
            if depth == 0: return i
    return -1


def find_closing_brace(text, pos):
    return find_matching(text, pos, '{', '}')


def brace_depth(text):
    """
    Brace depth at the end of `text` and the minimum depth reached during the scan, as a pair.
    Balanced text gives (0, 0); a negative minimum indicates a closing brace without an opening one.
    """
    depth = lowest = 0
    for _, ch in iter_unquoted(text):
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            lowest = min(lowest, depth)
    return depth, lowest


def collapse_whitespace(code):
    """
    Replace every run of whitespace outside string literals with a single space and strip the result.
    Whitespace inside '...', "..." and `...` literals is kept as is.
    """
    out   = []
    quote = None
    i = 0
    while i < len(code):
        ch = code[i]
        if quote:
            out.append(ch)
            if ch == '\\' and i + 1 < len(code):
                out.append(code[i+1])
                i += 2
                continue
            if ch == quote: quote = None
        elif ch in QUOTES:
            quote = ch
            out.append(ch)
        elif ch.isspace():
            if i + 1 < len(code) and not code[i+1].isspace():        # one space for the whole run, at its end
                out.append(' ')
        else:
            out.append(ch)
        i += 1
    return ''.join(out).strip()


#####################################################################################################################################################
#####
#####  TWIG
#####

def find_twig_close(text, pos):
    """
    Position right after the delimiter that closes a Twig tag opened at text[pos] with {{, {% or {#.
    Quoted strings inside {{...}} and {%...%} are skipped. Return -1 if the tag is unterminated.
    """
    opening = text[pos : pos+2]
    closing = TWIG_DELIMITERS[opening]
    if opening == '{#':
        end = text.find(closing, pos + 2)
        return -1 if end < 0 else end + 2

    quote = None
    i = pos + 2
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == '\\':
                i += 2
                continue
            if ch == quote: quote = None
        elif ch in '\'"':
            quote = ch
        elif text.startswith(closing, i):
            return i + 2
        i += 1
    return -1


def iter_twig_regions(text, comments = None):
    """
    Generate (start, stop) spans of all {{...}} and {%...%} tags of `text` that lie outside comments.
    Scanning stops at the first unterminated tag.
    """
    if comments is None: comments = comment_regions(text)
    pos = 0
    while True:
        match = TWIG_OPEN.search(text, pos)
        if not match: return
        start = match.start()
        region = comments.find(start)
        if region:
            pos = region[1]
            continue
        stop = find_twig_close(text, start)
        if stop < 0: return
        if match.group() != '{#':
            yield start, stop
        pos = stop


def match_if_block(text, pos, stop = None):
    """
    End position of a balanced {% if %}...{% endif %} block that starts at text[pos], or -1 if the block
    is not closed before `stop`. Nested if-blocks are counted; quoted strings outside Twig tags are skipped.
    """
    stop  = len(text) if stop is None else stop
    depth = 0
    quote = None
    i = pos
    while i < stop:
        ch = text[i]
        if text.startswith(('{{', '{%', '{#'), i):
            end = find_twig_close(text, i)
            if end < 0 or end > stop: return -1
            if not quote and IF_OPEN.match(text, i):
                depth += 1
            elif not quote and IF_CLOSE.match(text, i):
                depth -= 1
                if depth == 0: return end
            i = end
            continue
        if quote:
            if ch == quote: quote = None
        elif ch in '\'"':
            quote = ch
        i += 1
    return -1


#####################################################################################################################################################
#####
#####  TAGS
#####

Attribute = namedtuple('Attribute', 'name name_start name_end value value_start value_end quote')
Attribute.__doc__ = """
    Attribute of a start tag. `value` is None for an attribute without a value; `quote` is then None, too,
    and it's an empty string for an unquoted value. value_start/value_end delimit the value without quotes.
    """

Tag = namedtuple('Tag', 'name start stop attrs_start attrs_stop attributes')
Tag.__doc__ = """
    Start tag spanning text[start:stop]. Attributes (and Twig tags placed between them) occupy text[attrs_start:attrs_stop].
    """


def _skip_space(text, pos):
    while pos < len(text) and text[pos] in WHITESPACE:
        pos += 1
    return pos

def _find_quote(text, pos, quote):
    """Position of the `quote` that closes a value starting at `pos`; Twig tags inside the value are skipped."""
    while pos < len(text):
        if text.startswith(('{{', '{%', '{#'), pos):
            end = find_twig_close(text, pos)
            if end < 0: return -1
            pos = end
            continue
        if text[pos] == quote: return pos
        pos += 1
    return -1

def _unquoted_end(text, pos):
    while pos < len(text) and text[pos] not in WHITESPACE and text[pos] != '>':
        if text.startswith(('{{', '{%'), pos):
            end = find_twig_close(text, pos)
            if end < 0: return len(text)
            pos = end
            continue
        pos += 1
    return pos


def scan_tag(text, start):
    """
    Scan a start tag that begins at text[start] == '<'. Return a Tag, or None if there is no valid
    start tag at this position or the tag is unterminated. Twig tags between attributes are skipped.
    """
    match = TAG_NAME.match(text, start + 1)
    if text[start] != '<' or not match: return None
    name = match.group()
    attrs_start = pos = match.end()
    attributes = []

    while True:
        pos = _skip_space(text, pos)
        if pos >= len(text): return None
        if text[pos] == '>':
            return Tag(name, start, pos + 1, attrs_start, pos, attributes)
        if text.startswith('/>', pos):
            return Tag(name, start, pos + 2, attrs_start, pos, attributes)
        if text.startswith(('{{', '{%', '{#'), pos):
            end = find_twig_close(text, pos)
            if end < 0: return None
            pos = end
            continue

        name_start = pos
        while pos < len(text) and text[pos] not in NAME_STOP and not text.startswith(('{{', '{%', '{#'), pos):
            pos += 1
        if pos == name_start:                   # stray character, like a quote or a slash
            pos += 1
            continue
        name_end = pos

        after = _skip_space(text, pos)
        if after >= len(text) or text[after] != '=':
            attributes.append(Attribute(text[name_start:name_end], name_start, name_end, None, None, None, None))
            continue

        pos = _skip_space(text, after + 1)
        if pos >= len(text): return None
        if text[pos] in '\'"':
            quote = text[pos]
            end = _find_quote(text, pos + 1, quote)
            if end < 0: return None
            value_start, value_end = pos + 1, end
            pos = end + 1
        else:
            quote = ''
            value_start = pos
            value_end = pos = _unquoted_end(text, pos)

        attr = Attribute(text[name_start:name_end], name_start, name_end, text[value_start:value_end], value_start, value_end, quote)
        attributes.append(attr)


def find_closing_tag(text, name, pos):
    """
    Match object of the first closing tag </name> at or after `pos`, case-insensitive; None if not found.
    Nested elements of the same name are NOT counted: the first closing tag wins.
    """
    return re.compile(r'</%s\s*>' % re.escape(name), re.IGNORECASE).search(text, pos)


def iter_tags(text, comments = None):
    """
    Generate Tag objects of all start tags in `text`, skipping comments and Twig tags.
    Contents of script/style elements are skipped as a whole.
    """
    if comments is None: comments = comment_regions(text)
    pos = 0
    while pos < len(text):
        lt = text.find('<', pos)
        twig = TWIG_OPEN.search(text, pos)
        if twig and (lt < 0 or twig.start() < lt):
            region = comments.find(twig.start())
            end = region[1] if region else find_twig_close(text, twig.start())
            pos = end if end > 0 else twig.start() + 2
            continue
        if lt < 0: return

        region = comments.find(lt)
        if region:
            pos = region[1]
            continue
        tag = scan_tag(text, lt) if TAG_OPEN.match(text, lt) else None
        if tag is None:
            pos = lt + 1
            continue

        yield tag
        pos = tag.stop
        if tag.name.lower() in EMBEDDED_TAGS:
            closing = find_closing_tag(text, tag.name, pos)
            if closing: pos = closing.start()


def find_tag_directives(text, start, stop):
    """
    Generate (start, stop, kind) spans of Twig blocks placed directly inside a start tag between
    positions `start` and `stop`: {# comments #} and balanced {% if %}...{% endif %} blocks.
    Quoted attribute values are skipped, so blocks inside values are not reported.
    """
    pos   = start
    quote = None
    while pos < stop:
        ch = text[pos]
        if quote:
            if ch == quote:
                quote = None
            elif text.startswith(('{{', '{%', '{#'), pos):
                end = find_twig_close(text, pos)
                if end < 0: return
                pos = end
                continue
            pos += 1
            continue

        if ch in '\'"':
            quote = ch
            pos += 1
        elif text.startswith('{#', pos):
            end = find_twig_close(text, pos)
            if end < 0 or end > stop: return
            yield pos, end, KIND_COMMENT
            pos = end
        elif IF_OPEN.match(text, pos):
            end = match_if_block(text, pos, stop)
            if end < 0:
                pos = find_twig_close(text, pos)
                if pos < 0: return
                continue
            yield pos, end, KIND_CONDITIONAL
            pos = end
        elif text.startswith(('{{', '{%'), pos):
            end = find_twig_close(text, pos)
            if end < 0: return
            pos = end
        else:
            pos += 1
