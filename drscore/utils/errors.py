"""
errors.py

Exceptions raised by the scoring engine.
"""


class DRScoreError(RuntimeError):
    """
    Base class for all exceptions that are to be presented to a user.
    """

    def __init__(self, fmt: str, *fmt_args: object):
        self.fmt = fmt
        self.fmt_args = fmt_args
        self.code = 1
        super().__init__(fmt % fmt_args if fmt_args else fmt)


class RuleLoadError(DRScoreError):
    """ The rule store could not be loaded, so no scoring can proceed. """

    def __init__(self, fmt: str, *fmt_args: object):
        super().__init__(fmt, *fmt_args)
        self.code = 2


class RuleSyntaxError(DRScoreError):
    """ A single combination rule expression could not be parsed. """


class InvalidAlignmentError(DRScoreError):
    """ Aligner output is inconsistent, like an empty gene region. """

    def __init__(self, fmt: str, *fmt_args: object):
        super().__init__(fmt, *fmt_args)
        self.code = 3
