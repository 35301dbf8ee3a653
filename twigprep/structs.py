"""
Data structures for the printing phase.
"""

########################################################################################################################################################

class Stack(list):
    """
    Stack of values pushed during a tree walk. Implementation based on standard <list>.
    position() and reset() allow dropping everything that was pushed inside a subtree.
    """

    def push(self, value):
        """Append `value` to the stack and return its index in the list."""
        self.append(value)
        return len(self) - 1

    def position(self):
        """Position in a Stack that can be passed to reset()."""
        return len(self)

    def reset(self, position):
        "If anything was added on top of the stack, reset the top position to a previous state and forget those elements."
        del self[position:]


class Flags(object):
    """
    Printer context flags inherited top-down during a tree walk. A node sets a flag with push() before
    rendering its children, and drops it with reset() afterwards; get() returns the value set
    by the nearest ancestor, or `default` if no ancestor has set the flag.

    >>> flags = Flags()
    >>> pos = flags.position()
    >>> flags.push(Flags.IN_ATTRIBUTE, True); flags.push(Flags.OVERRIDE_QUOTE_CHAR, "'")
    >>> flags.get(Flags.OVERRIDE_QUOTE_CHAR)
    "'"
    >>> flags.reset(pos)
    >>> flags.get(Flags.IN_ATTRIBUTE, False)
    False
    """

    IN_ATTRIBUTE        = 'in_attribute'            # printing inside an attribute value
    OVERRIDE_QUOTE_CHAR = 'override_quote_char'     # quote character forced by an ancestor
    COLLAPSE_WHITESPACE = 'collapse_whitespace'     # whitespace runs of an attribute value are collapsed

    stack = None            # Stack of (name, value) pairs

    def __init__(self):
        self.stack = Stack()

    def push(self, name, value):
        self.stack.push((name, value))

    def get(self, name, default = None):
        for flag, value in reversed(self.stack):
            if flag == name: return value
        return default

    def __contains__(self, name):
        return any(flag == name for flag, _ in self.stack)

    def position(self):
        return self.stack.position()

    def reset(self, position):
        self.stack.reset(position)


class State(object):
    """
    Run-scoped state of printing: the Ledger of the protection phase, printing configuration,
    sub-formatters, and the context flags.
    """
    ledger     = None
    config     = None
    formatters = None
    flags      = None

    def __init__(self, ledger, config, formatters = None):
        self.ledger = ledger
        self.config = config
        self.formatters = formatters
        self.flags = Flags()

