from twigprep.structs import State


DECODE_MODES = (None, 'attributes', 'all')

########################################################################################################################################################

class Printer(object):
    """
    Walks a TemplateTree and produces the final text, with all placeholders restored
    through the Ledger of the protection phase.
    """

    config_default = {
        'quote_char':           '"',                # default quote for attribute values and Twig strings that contain no quotes
        'decode_entities':      None,               # None: character references are emitted as written in the source;
                                                    # 'attributes': numeric references inside attribute values are decoded; 'all': decoded everywhere
        'collapse_expressions': True,               # if True, ${...} expressions are emitted with whitespace collapsed, otherwise as in the source
        'embedded_indent':      None,               # if not None, script/style content is re-indented with this unit,
                                                    # one level deeper than the line of its opening tag
        'collapse_attribute_whitespace': False,     # if True, static values of id, class and type attributes are printed
                                                    # with whitespace runs collapsed and the ends stripped
    }
    config = None

    ledger     = None
    formatters = None           # Formatters instance, or None if embedded content shall not be formatted

    def __init__(self, ledger, formatters = None, **config):
        self.ledger = ledger
        self.formatters = formatters
        self.config = self.config_default.copy()
        self.config.update(**config)

        if self.config['decode_entities'] not in DECODE_MODES:
            raise ValueError(f"incorrect value of 'decode_entities': {self.config['decode_entities']!r}")
        if self.config['quote_char'] not in ('"', "'"):
            raise ValueError(f"incorrect quote character: {self.config['quote_char']!r}")

    def print(self, tree):
        """Final text of a TemplateTree `tree`."""
        if tree.root is None: return ''
        state = State(self.ledger, self.config, self.formatters)
        return tree.root.render(state)
