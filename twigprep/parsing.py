"""
Generic rewriting of a raw Parsimonious parse tree into a tree of custom node classes.

A subclass of ParsimoniousTree defines `parser` (a parsimonious Grammar) and `NODES`, a container of
node classes named x<rule>. Every raw node whose rule has a class in NODES is converted to that class;
other nodes are kept as generic nodes, or reduced and replaced with their children, according to the
rewriting configuration below.
"""

from parsimonious.exceptions import ParseError, IncompleteParseError

from twigprep.errors import SyntaxErrorEx


########################################################################################################################################################

class ParsimoniousTree(object):

    NODES  = None               # container class with x<rule> node classes
    parser = None               # parsimonious Grammar instance

    ###  Configuration of rewriting process  ###

    _ignore_  = ""              # nodes that will be pruned from the tree, as a space-separated string of rule names
    _reduce_  = ""              # nodes that will be replaced with a list of their children
    _compact_ = ""              # nodes that will be replaced with their child if they have exactly 1 child after rewriting

    _reduce_anonym_ = True      # reduce all anonymous nodes, i.e., nodes generated by unnamed expressions, typically groupings (...)
    _reduce_string_ = True      # if a node to be reduced has no children but matched a non-empty part of text, it shall be replaced with a 'string' node

    text = None                 # full text that was parsed
    ast  = None                 # raw tree as returned by Parsimonious
    root = None                 # root node of the final tree after rewriting


    class node(object):
        """Base class of nodes of the rewritten tree."""

        tree     = None         # ParsimoniousTree that this node belongs to
        type     = None         # name of the grammar rule that produced the node; 'string' for reduced leaves
        children = None         # list of child nodes
        pos      = None         # (start, end) position of the node in `fulltext`
        fulltext = None         # full text of the document, shared by all nodes

        def __init__(self, tree, astnode, children = None, type = None):
            self.tree = tree
            self.type = type or astnode.expr_name or 'string'
            self.children = children or []
            self.pos = (astnode.start, astnode.end)
            self.fulltext = astnode.full_text
            self.setup()

        def setup(self):
            """Called at the end of __init__(), when all children are already rewritten."""

        def text(self):
            """The original text that this node was generated from."""
            return self.fulltext[self.pos[0]:self.pos[1]]

        def render(self, state):
            if self.children:
                return ''.join(c.render(state) for c in self.children)
            return self.text()

        def __str__(self): return "<%s>" % self.type


    def __init__(self, text):
        self.text = text
        self._parse(text)
        if self.ast is None:
            self.root = None
            return
        nodes = self._rewrite(self.ast)
        assert len(nodes) == 1, "root of the tree must not be reduced"
        self.root = nodes[0]

    def _parse(self, text):
        try:
            self.ast = self.parser.parse(text)
        except IncompleteParseError as ex:
            raise SyntaxErrorEx("unexpected input", text, ex.pos)
        except ParseError as ex:
            raise SyntaxErrorEx(f"syntax error in rule '{ex.expr.name or ex.expr.as_rule()}'", text, ex.pos)

    def _rewrite(self, astnode):
        """Rewrite a raw Parsimonious node into a list of 0, 1 or more custom nodes."""

        name = astnode.expr_name
        if name in self._ignore_.split():
            return []

        children = [c for child in astnode.children for c in self._rewrite(child)]
        cls = getattr(self.NODES, 'x' + name, None) if name else None

        if cls is None:
            reduce = name in self._reduce_.split() or (not name and self._reduce_anonym_)
            if reduce:
                if children or astnode.start == astnode.end or not self._reduce_string_:
                    return children
                return [self.node(self, astnode, type = 'string')]
            cls = self.node

        node = cls(self, astnode, children)
        if name in self._compact_.split() and len(node.children) == 1:
            return node.children
        return [node]
