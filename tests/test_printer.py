"""
Run:
$  pytest -v tests/test_printer.py
"""

import pytest

from twigprep.config import KIND_ENTITY, KIND_RAW, KIND_SCRIPT, KIND_EXPRESSION, KIND_ATTR_VALUE
from twigprep.formatters import Formatters
from twigprep.ledger import Ledger, PlainText, EmbeddedContent, MixedDirective
from twigprep.printer import Printer
from twigprep.restore import select_quote, contains_unmasked, decode_entities, reindent, expand, restore_payload
from twigprep.structs import Flags, State


#####################################################################################################################################################
#####
#####  UTILITIES
#####

def make_state(ledger = None, formatters = None, **config):
    params = Printer.config_default.copy()
    params.update(config)
    return State(ledger if ledger is not None else Ledger(), params, formatters)

def failing(code):
    raise ValueError("cannot format")


#####################################################################################################################################################
#####
#####  TESTS
#####

def test_001_select_quote():
    assert select_quote("it's") == '"'
    assert select_quote('a "b" c') == "'"
    assert select_quote('plain') == '"'
    assert select_quote('plain', "'") == "'"
    assert select_quote(r"it\'s") == '"'                    # masked quotes are ignored
    assert select_quote(r'a \"b\"', "'") == "'"
    assert select_quote('a "b"', override = '"') == '"'     # forced quote always wins
    assert contains_unmasked(r"a\\'b", "'")                 # escaped backslash, quote is unmasked
    assert not contains_unmasked(r"a\'b", "'")

def test_002_entities():
    assert decode_entities('a&#38;b &#x41;&#X42; &amp;') == 'a&b AB &amp;'
    assert decode_entities('&#99999999999;') == '&#99999999999;'

def test_003_flags():
    flags = Flags()
    assert flags.get(Flags.IN_ATTRIBUTE, False) is False
    outer = flags.position()
    flags.push(Flags.OVERRIDE_QUOTE_CHAR, "'")
    inner = flags.position()
    flags.push(Flags.IN_ATTRIBUTE, True)
    flags.push(Flags.OVERRIDE_QUOTE_CHAR, '"')
    assert flags.get(Flags.OVERRIDE_QUOTE_CHAR) == '"'      # nearest ancestor wins
    flags.reset(inner)
    assert flags.get(Flags.OVERRIDE_QUOTE_CHAR) == "'"
    assert Flags.IN_ATTRIBUTE not in flags
    flags.reset(outer)
    assert flags.get(Flags.OVERRIDE_QUOTE_CHAR) is None

def test_004_restore_entities():
    ledger = Ledger()
    id_ = ledger.insert(KIND_ENTITY, '&#160;')
    assert expand(make_state(ledger), f'a{id_}b') == 'a&#160;b'
    assert expand(make_state(ledger, decode_entities = 'all'), f'a{id_}b') == 'a\xa0b'

    state = make_state(ledger, decode_entities = 'attributes')
    assert expand(state, id_) == '&#160;'
    state.flags.push(Flags.IN_ATTRIBUTE, True)
    assert expand(state, id_) == '\xa0'

def test_005_restore_nested():
    ledger = Ledger()
    entity = ledger.insert(KIND_ENTITY, '&amp;')
    value  = ledger.insert(KIND_ATTR_VALUE, PlainText(f'a {entity} b'))
    raw    = ledger.insert(KIND_RAW, '{{ x }} __html-entity-0__')
    expr   = ledger.insert(KIND_EXPRESSION, PlainText('${a + b}', original = '${ a\n + b }'))
    state  = make_state(ledger)

    assert expand(state, value) == 'a &amp; b'
    assert expand(state, raw) == '{{ x }} __html-entity-0__'         # raw content is never expanded
    assert expand(state, expr) == '${a + b}'
    assert expand(make_state(ledger, collapse_expressions = False), expr) == '${ a\n + b }'
    assert expand(state, 'x __vue-expression-99__ y') == 'x __vue-expression-99__ y'    # unknown id passes through

def test_006_restore_mixed():
    ledger = Ledger()
    entity = ledger.insert(KIND_ENTITY, '&#38;')
    mixed  = MixedDirective(MixedDirective.split(f'/a{entity}b/{{{{ id }}}}'), name = 'data-url')
    assert restore_payload(make_state(ledger), mixed) == '/a&#38;b/{{ id }}'

def test_007_restore_embedded():
    ledger = Ledger()
    id_ = ledger.insert(KIND_SCRIPT, EmbeddedContent('\n  var a = 1;\n', 'text/javascript', tag = 'script'))

    assert expand(make_state(ledger), id_) == '\n  var a = 1;\n'
    assert expand(make_state(ledger, Formatters(javascript = str.upper)), id_) == '\n  VAR A = 1;\n'
    assert expand(make_state(ledger, Formatters(javascript = failing)), id_) == 'var a = 1;'
    assert expand(make_state(ledger, Formatters(css = str.upper)), id_) == '\n  var a = 1;\n'    # no formatter for this type

    state = make_state(ledger, embedded_indent = '    ')
    assert expand(state, id_, '  ') == '\n      var a = 1;\n  '

def test_008_reindent():
    assert reindent('\n    a\n      b\n\n    c\n', '  ') == '\n  a\n    b\n\n  c\n'
    assert reindent('  \n ', '  ') == ''

def test_009_config():
    with pytest.raises(ValueError, match = 'decode_entities'):
        Printer(Ledger(), decode_entities = 'some')
    with pytest.raises(ValueError, match = 'quote character'):
        Printer(Ledger(), quote_char = '`')
