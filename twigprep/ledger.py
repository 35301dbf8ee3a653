"""
Ledger of placeholders: a run-scoped mapping of placeholder ids to the payloads they stand for.

Payloads form a closed set of variants, dispatched explicitly during restoration:
- PlainText        -- original text, restored as is (after expansion of nested placeholders)
- QuotedValue      -- attribute value together with the quote character it was written with
- EmbeddedContent  -- content of a script/style element together with its content type
- MixedDirective   -- attribute value split into static text and Twig expression fragments
"""

import re
from collections import namedtuple

from twigprep.config import KINDS, PLACEHOLDER_MARKER
from twigprep.errors import PlaceholderError


#####################################################################################################################################################
#####
#####  PAYLOADS
#####

class Payload(object):
    """Base class for ledger payloads."""

    kind     = None         # kind of the placeholder that this payload was inserted with; set by Ledger.insert()
    original = None         # exact source text that was replaced with the placeholder

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.original)


class PlainText(Payload):

    text = None             # text to be emitted during restoration; may differ from `original` when normalized

    def __init__(self, text, original = None):
        self.text = text
        self.original = text if original is None else original


class QuotedValue(Payload):

    text  = None
    quote = None            # quote character to be used when the value is printed

    def __init__(self, text, quote, original = None):
        self.text  = text
        self.quote = quote
        self.original = text if original is None else original


class EmbeddedContent(Payload):

    text         = None
    content_type = None     # MIME-like type of the content, as declared in the `type` attribute of the element
    tag          = None     # name of the element: "script" or "style"

    def __init__(self, text, content_type, tag = None):
        self.text = self.original = text
        self.content_type = content_type
        self.tag = tag


Fragment = namedtuple('Fragment', 'expression value')       # `value` is the inner text of an expression if `expression` is true


class MixedDirective(Payload):
    """
    Attribute value that mixes static text with Twig print expressions, like "item-{{ id }}".
    Fragments are kept in their order of occurrence, so the value can be reassembled.
    """
    parts = None            # list of Fragment tuples
    name  = None            # name of the attribute, if known
    quote = None            # quote character the value was written with, or None if the printer should choose

    def __init__(self, parts, name = None, quote = None, original = None):
        self.parts = list(parts)
        self.name  = name
        self.quote = quote
        self.original = original if original is not None else self.join(self.parts)

    @staticmethod
    def join(parts):
        return ''.join('{{' + p.value + '}}' if p.expression else p.value for p in parts)

    @staticmethod
    def split(value):
        """Split `value` into a list of Fragments: static text and the inner text of {{...}} expressions."""
        parts = []
        pos = 0
        while pos < len(value):
            start = value.find('{{', pos)
            stop  = value.find('}}', start + 2) if start >= 0 else -1
            if stop < 0:
                parts.append(Fragment(False, value[pos:]))
                break
            if start > pos:
                parts.append(Fragment(False, value[pos:start]))
            parts.append(Fragment(True, value[start + 2 : stop]))
            pos = stop + 2
        return parts

    def expressions(self):
        return [p.value.strip() for p in self.parts if p.expression]


#####################################################################################################################################################
#####
#####  LEDGER
#####

class Ledger(object):
    """
    Mapping of placeholder ids to payloads, with a single counter shared by all kinds of placeholders,
    so that ids stay unique across all stages of a run. Entries are never removed nor modified.

    Ids have the form: <marker><kind>-<number><marker>, e.g. "__vue-expression-7__".
    """

    KIND = r'[a-z]+(?:-[a-z]+)*'

    marker  = None          # delimiter string placed on both sides of every id
    pattern = None          # compiled regex that matches ids with this ledger's marker
    counter = None          # sequence number of the next placeholder
    entries = None          # dict of {id: payload}, in the order of insertion

    def __init__(self, marker = PLACEHOLDER_MARKER):
        self.marker  = marker
        self.pattern = self.compile(marker)
        self.counter = 0
        self.entries = {}

    @classmethod
    def compile(cls, marker):
        marker = re.escape(marker)
        return re.compile(r'%s(%s)-([0-9]+)%s' % (marker, cls.KIND, marker))

    @classmethod
    def for_text(cls, text, marker = PLACEHOLDER_MARKER):
        """
        Create a Ledger whose ids can't be confused with any fragment of `text`: the marker is extended
        with underscores until no id-shaped token with this marker occurs in `text`.
        """
        while cls.compile(marker).search(text):
            marker += '_'
        return cls(marker)

    def insert(self, kind, payload):
        """Allocate a new id of a given `kind` for the `payload`, which can be a Payload or a plain string."""
        if kind not in KINDS:
            raise PlaceholderError(f"unknown kind of placeholder: {kind!r}")
        if isinstance(payload, str):
            payload = PlainText(payload)
        payload.kind = kind

        id_ = f'{self.marker}{kind}-{self.counter}{self.marker}'
        self.counter += 1
        self.entries[id_] = payload
        return id_

    def get(self, id_, default = None):
        return self.entries.get(id_, default)

    def has(self, id_):
        return id_ in self.entries

    __contains__ = has

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def items(self):
        return self.entries.items()

    def kind_of(self, token):
        """Kind of the placeholder `token` if it is shaped like an id of this ledger, otherwise None."""
        match = self.pattern.fullmatch(token)
        return match.group(1) if match else None

    def is_placeholder(self, token, kind = None):
        """True if `token` is an id registered in this ledger, optionally of a given `kind` or kinds."""
        payload = self.entries.get(token)
        if payload is None: return False
        if kind is None: return True
        if isinstance(kind, str): return payload.kind == kind
        return payload.kind in kind

    def find_all(self, text):
        """List of all id-shaped tokens found in `text`, in the order of occurrence. Unregistered ones are included."""
        return [m.group(0) for m in self.pattern.finditer(text)]
