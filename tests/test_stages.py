"""
Run:
$  pytest -v tests/test_stages.py
"""

import pytest

from twigprep.ledger import QuotedValue, MixedDirective, EmbeddedContent, Fragment
from twigprep.stages import Context, protect, apply_edits, isolate_raw_content, protect_entities, isolate_embedded, isolate_tag_directives, \
    isolate_attribute_values, isolate_directive_names, protect_expressions, protect_arrow_functions, normalize_quotes, \
    parse_style, STAGE_NAMES


#####################################################################################################################################################
#####
#####  UTILITIES
#####

def run(stage, text):
    """Run a single `stage` on `text`, return the sanitized text and the ledger."""
    ctx = Context(text)
    return stage(text, ctx), ctx.ledger

CORPUS = """
<div id="app" class="wrapper">
    <pre v-pre>{{ raw }} <b>kept</b></pre>
    <script>
        var total = {{ count }};
    </script>
    <button {% if active %}class="on"{% endif %} @click.prevent="toggle()">Go&#160;now</button>
    <div :class="{ active: isActive, nested: { deep: true } }"></div>
    <span>${ user.first
        + user.last }</span>
    {{ items|filter(x => x.visible)|join(", ") }}
</div>
"""

#####################################################################################################################################################
#####
#####  TESTS
#####

def test_001_raw_content():
    text, ledger = run(isolate_raw_content, '<div v-pre>{{ a }}<b @click="x"></b></div><p>{{ b }}</p>')
    assert text == '<div v-pre>__v-pre-content-0__</div><p>{{ b }}</p>'
    assert ledger.get('__v-pre-content-0__').text == '{{ a }}<b @click="x"></b>'

    # same-named nested elements close the region too early
    text, ledger = run(isolate_raw_content, '<div v-pre><div>a</div>b</div>')
    assert text == '<div v-pre>__v-pre-content-0__</div>b</div>'

    text, ledger = run(isolate_raw_content, '<div v-pre>{{ a }}')
    assert text == '<div v-pre>{{ a }}'
    assert len(ledger) == 0

def test_002_entities():
    src = '<p title="a&amp;b">&#160;&#xA0;&nbsp;</p><!-- &copy; -->'
    text, ledger = run(protect_entities, src)
    assert text == '<p title="a__html-entity-0__b">__html-entity-1____html-entity-2____html-entity-3__</p><!-- &copy; -->'
    assert [ledger.get(id_).original for id_ in ledger] == ['&amp;', '&#160;', '&#xA0;', '&nbsp;']

def test_003_embedded():
    src = '<script type="module">\n  import x from "y";\n</script><style></style><style>a{}</style>'
    text, ledger = run(isolate_embedded, src)
    assert text == '<script type="module">__script-content-0__</script><style></style><style>__style-content-1__</style>'

    script = ledger.get('__script-content-0__')
    assert isinstance(script, EmbeddedContent)
    assert (script.content_type, script.tag, script.text) == ('module', 'script', '\n  import x from "y";\n')
    assert ledger.get('__style-content-1__').content_type == 'text/css'

def test_004_tag_directives():
    src = '<div {% if a %}class="x"{% endif %} {# note #} id="y">'
    text, ledger = run(isolate_tag_directives, src)
    assert text == '<div __data-twig-conditional-0__="1" __data-twig-comment-1__="1" id="y">'
    assert ledger.get('__data-twig-conditional-0__').original == '{% if a %}class="x"{% endif %}'
    assert ledger.get('__data-twig-comment-1__').original == '{# note #}'

    src = '<div class="{% if a %}x{% endif %}">'
    assert run(isolate_tag_directives, src)[0] == src

def test_005_attribute_values():
    text, ledger = run(isolate_attribute_values, '<div class="a {{ b }}" id="c">')
    assert text == '<div class="__twig-attr-value-0__" id="c">'
    assert ledger.get('__twig-attr-value-0__').text == 'a {{ b }}'

    text, ledger = run(isolate_attribute_values, '<div style="color:red;  width: {{ w }}px;">')
    payload = ledger.get('__twig-attr-value-0__')
    assert payload.text == 'color: red; width: {{ w }}px;'
    assert payload.original == 'color:red;  width: {{ w }}px;'

    text, ledger = run(isolate_attribute_values, '<div x-data="  { open: false }  " @click="if (a) {">')
    assert ledger.get('__twig-attr-value-0__').text == '{ open: false }'
    assert ledger.get('__twig-attr-value-1__').text == 'if (a) {'              # unbalanced braces, left as is

    text, ledger = run(isolate_attribute_values, '<div data-url="/item/{{ id }}">')
    payload = ledger.get('__twig-attr-value-0__')
    assert isinstance(payload, MixedDirective)
    assert payload.parts == [Fragment(False, '/item/'), Fragment(True, ' id ')]

    for src in ['<div class=\'{{ a }}\'>', '<div x-show="open">', '<div title="plain">']:
        assert run(isolate_attribute_values, src)[0] == src

def test_006_style():
    assert parse_style(' a:b ;c : d ') == 'a: b; c: d'
    assert parse_style("background: url('x;y'); color: {{ c }};") == "background: url('x;y'); color: {{ c }};"
    assert parse_style("color:{{ c }} ; margin:0") == "color:{{ c }}; margin: 0"

def test_007_directive_names():
    src = '<a @click.prevent="go" :href="url" x-on:keyup.enter="k" v-if="ok" xmlns:xlink="http://www.w3.org/1999/xlink" title="t">'
    text, ledger = run(isolate_directive_names, src)
    assert text == '<a __data-vue-alpine-0__="go" __data-vue-alpine-1__="url" __data-vue-alpine-2__="k" __data-vue-alpine-3__="ok" ' \
                   'xmlns:xlink="http://www.w3.org/1999/xlink" title="t">'
    assert [ledger.get(id_).original for id_ in ledger] == ['@click.prevent', ':href', 'x-on:keyup.enter', 'v-if']

    src = '<!-- <a @click="x"> -->{# <b :c="d"> #}<svg xmlns:xlink="x"><use xlink:href="#a"/></svg>'
    text, ledger = run(isolate_directive_names, src)
    assert text == src
    assert len(ledger) == 0

def test_008_directive_values():
    text, ledger = protect('<a :title=\'say "hi"\' x-show="open">', stages = ['directive_names', 'directive_values'])
    assert text == '<a __data-vue-alpine-0__=\'__vue-alpine-value-2__\' __data-vue-alpine-1__="__vue-alpine-value-3__">'
    first, second = ledger.get('__vue-alpine-value-2__'), ledger.get('__vue-alpine-value-3__')
    assert isinstance(first, QuotedValue)
    assert (first.text, first.quote) == ('say "hi"', "'")
    assert (second.text, second.quote) == ('open', '"')

    # values isolated in an earlier stage are not isolated again
    text, ledger = protect('<a @click="go()">')
    assert text == '<a __data-vue-alpine-1__="__twig-attr-value-0__">'
    assert len(ledger) == 2

    text, ledger = protect("<a :href='/x/{{ id }}'>")
    payload = ledger.get('__vue-alpine-value-1__')
    assert isinstance(payload, MixedDirective)
    assert payload.expressions() == ['id']
    assert (payload.name, payload.quote) == (':href', '"')

def test_009_expressions():
    src = '<p>${ a }</p>'
    assert run(protect_expressions, src)[0] == src

    text, ledger = run(protect_expressions, '<p>${ a  +\n b }</p>')
    assert text == '<p>__vue-expression-0__</p>'
    payload = ledger.get('__vue-expression-0__')
    assert payload.text == '${a + b}'
    assert payload.original == '${ a  +\n b }'

    text, ledger = run(protect_expressions, "<p>${ f('x   y',\n 1) } ${ {a: 1}.a }</p>")
    assert [ledger.get(id_).text for id_ in ledger] == ["${f('x   y', 1)}", "${{a: 1}.a}"]

    src = '<p title="${ a\n }"><!-- ${ b\n } --></p>'
    assert run(protect_expressions, src)[0] == src

def test_010_arrow_functions():
    text, ledger = run(protect_arrow_functions, '{{ items|filter(x => x.ok)|map((a, b) => a ~ b) }}')
    assert text == '{{ items|filter(__twig-arrow-func-0__)|map(__twig-arrow-func-1__) }}'
    assert [ledger.get(id_).text for id_ in ledger] == ['x => x.ok', '(a, b) => a ~ b']

    text, ledger = run(protect_arrow_functions, '{% set f = x => x * 2 %}')
    assert text == '{% set f = __twig-arrow-func-0__ %}'
    assert ledger.get('__twig-arrow-func-0__').text == 'x => x * 2'

    text, ledger = run(protect_arrow_functions, '{{ {a: v => v} }}')
    assert text == '{{ {a: __twig-arrow-func-0__} }}'

    for src in ['<p>a => b</p>', '{{ "x => y" }}', '{# x => y #}']:
        assert run(protect_arrow_functions, src)[0] == src

def test_011_quotes():
    src = '<a href=\'x\' title=\'say "hi"\' class=\'{{ c }}\'>'
    text, _ = run(normalize_quotes, src)
    assert text == '<a href="x" title=\'say "hi"\' class=\'{{ c }}\'>'

def test_012_idempotence():
    src = '<div class="a">\n  <p>{{ user.name|upper }}</p>\n  {% for i in items %}<li>{{ i }}</li>{% endfor %}\n</div>'
    text, ledger = protect(src)
    assert text == src
    assert len(ledger) == 0

def test_013_corpus():
    text, ledger = protect(CORPUS)
    ids = list(ledger)
    assert len(ids) == len(set(ids)) == 10
    assert [ledger.get(id_).kind for id_ in ids] == [
        'v-pre-content', 'html-entity', 'script-content', 'data-twig-conditional', 'twig-attr-value', 'twig-attr-value',
        'data-vue-alpine', 'data-vue-alpine', 'vue-expression', 'twig-arrow-func']
    assert sorted(ledger.find_all(text)) == sorted(ids)
    assert '@click' not in text and '=>' not in text and '${' not in text

def test_014_stage_selection():
    src = '<a @click="go">&amp;</a>'
    text, ledger = protect(src, stages = ['entities'])
    assert text == '<a @click="go">__html-entity-0__</a>'
    text, ledger = protect(src, stages = [])
    assert text == src
    assert STAGE_NAMES[0] == 'raw_content' and STAGE_NAMES[-1] == 'quotes'

    with pytest.raises(ValueError, match = 'unknown protection stages'):
        protect(src, stages = ['entities', 'nope'])

def test_015_expressions_in_twig_strings():
    for src in ["{{ 'x ${ a  b } y' }}", '{% set s = "${ a\n}" %}']:
        text, ledger = run(protect_expressions, src)
        assert text == src
        assert len(ledger) == 0

    text, ledger = run(protect_expressions, "{{ f(${ a  b }) }} {{ 'c' }} ${ d\n }")
    assert text == "{{ f(__vue-expression-0__) }} {{ 'c' }} __vue-expression-1__"

def test_016_apply_edits():
    assert apply_edits("abcdef", [(4, 5, 'X'), (0, 2, 'Y')]) == "YcdXf"
    with pytest.raises(ValueError, match = 'overlapping'):
        apply_edits("abcdef", [(0, 3, 'X'), (2, 4, 'Y')])
