########################################################################################################################################################

class TwigprepError(Exception):
    """
    Base class for errors of the preprocessing and printing layer. If `text` and `pos` are given,
    the message is extended with line and column of the position (both 1-based) and a snippet of text near it.
    """
    text   = None
    pos    = None
    line   = None
    column = None

    def __init__(self, msg = None, text = None, pos = None):
        self.text = text
        self.pos  = pos
        if text is not None and pos is not None:
            self.line   = text.count('\n', 0, pos) + 1
            self.column = pos - (text.rfind('\n', 0, pos) + 1) + 1
            msg = self.make_msg(msg)
        super(TwigprepError, self).__init__(msg)

    def make_msg(self, msg):
        near = self.text[self.pos : self.pos + 20]
        return msg + " at line %s, column %s (near %r)" % (self.line, self.column, near)


########################################################################################################################################################

class SyntaxErrorEx(TwigprepError, SyntaxError):     pass
class PlaceholderError(TwigprepError, ValueError):  pass

class FormatterError(TwigprepError):
    """Raised when a sub-formatter returns code where some of the protected Twig expressions are missing."""
