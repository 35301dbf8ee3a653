"""
Grammar of sanitized Twig/HTML templates, for the Parsimonious parser.

The grammar recognizes HTML tags with attributes, comments, text, and Twig {{ }} / {% %} / {# #} tags
with a token-level view of expressions. It's deliberately liberal: constructs the grammar can't handle,
like Vue/Alpine directives, embedded scripts and arrow functions, are replaced with placeholders
before parsing; placeholder ids are recognized as separate tokens inside Twig expressions.

The grammar is parameterized with the marker string that delimits placeholder ids (MARKER).
Literal '%' must be written as '%%'.
"""

import re

from parsimonious.grammar import Grammar as Parsimonious

from twigprep.config import PLACEHOLDER_MARKER


#####################################################################################################################################################
#####
#####  GRAMMAR
#####

grammar = r"""

###  Every character of the input text belongs to exactly one leaf of the parse tree,
###  so that the text can be reproduced by concatenating the leaves.

###  DOCUMENT

document         =  item*
item             =  html_comment / declaration / twig_comment / twig_print / twig_block / end_tag / start_tag / text

html_comment     =  ~r"<!--.*?-->"s
declaration      =  ~r"<![^>]*>"
text             =  ~r"(?:[^<{]|<(?![a-zA-Z/!])|\{(?![{%%#]))+"

###  TWIG

twig_comment     =  ~r"\{#.*?#\}"s
twig_print       =  open_print print_expression close_print
twig_block       =  open_block block_expression close_block

open_print       =  ~r"\{\{-?"
close_print      =  ~r"-?\}\}"
open_block       =  ~r"\{%%-?"
close_block      =  ~r"-?%%\}"

###  Only the closing delimiter of the enclosing tag ends an expression: "}}" may occur inside {%%...%%}
###  and "%%}" inside {{...}}. Hash literals in print tags are matched as a whole, so that their closing
###  braces are not mistaken for the end of the tag.

print_expression =  print_token*
print_token      =  space / twig_string / placeholder / number / name / hash / print_symbol
print_symbol     =  !close_print ~r"[^\s\w'\"]"

block_expression =  block_token*
block_token      =  space / twig_string / placeholder / number / name / block_symbol
block_symbol     =  !close_block ~r"[^\s\w'\"]"

hash             =  "{" hash_token* "}"
hash_token       =  space / twig_string / placeholder / number / name / hash / hash_symbol
hash_symbol      =  ~r"[^\s\w'\"{}]"

twig_string      =  ~r"'(?:[^'\\]|\\.)*'"s / ~r'"(?:[^"\\]|\\.)*"'s
placeholder      =  ~r"%(MARKER)s[a-z]+(?:-[a-z]+)*-[0-9]+%(MARKER)s"
number           =  ~r"[0-9]+(?:\.[0-9]+)?"
name             =  ~r"[^\W\d]\w*"

###  MARKUP

start_tag        =  tag_open attribute* space? tag_close
end_tag          =  ~r"</[a-zA-Z][^\s>]*\s*>"
tag_open         =  ~r"<[a-zA-Z][^\s/>{}]*"
tag_close        =  ~r"/?>"

attribute        =  space? (attr_named / twig_print / twig_block / twig_comment / attr_flag)
attr_named       =  attr_name equals attr_value
attr_flag        =  attr_name ''
attr_name        =  ~r"[^\s\"'<>/={}]+"
equals           =  ~r"\s*=\s*"

attr_value       =  value_dq / value_sq / value_unq
value_dq         =  '"' ~r'[^"]*' '"'
value_sq         =  "'" value_part* "'"
value_unq        =  unquoted_part+
value_part       =  twig_print / twig_block / twig_comment / ~r"[^'{]+" / "{"
unquoted_part    =  twig_print / twig_block / ~r"[^\s\"'=<>`{]+" / "{"

space            =  ~r"\s+"

"""


#####################################################################################################################################################
#####
#####  GRAMMAR INSTANCES
#####

class Grammar(Parsimonious):

    instances = {}          # class-level cache of Grammar instances, one per placeholder marker

    marker = None           # string that delimits placeholder ids on both sides

    def __init__(self, marker = PLACEHOLDER_MARKER):
        self.marker = marker
        gram = grammar % {'MARKER': re.escape(marker)}
        super(Grammar, self).__init__(gram)

    @staticmethod
    def get_parser(marker = PLACEHOLDER_MARKER):
        """
        Return an instance of Grammar that recognizes placeholders delimited with `marker`.
        Instances are cached, as compilation of the grammar is costly.
        """
        parser = Grammar.instances.get(marker)
        if parser is None:
            parser = Grammar.instances[marker] = Grammar(marker)
        return parser
