"""Domain errors.

RuleError and its subclasses are user-facing: their message is shown verbatim
to whoever issued the admin command. The others abort startup or a storage
command.
"""

from __future__ import annotations


class RuleError(Exception):
    """An admin operation violated a rule-set invariant."""


class DuplicateRuleError(RuleError):
    pass


class DuplicateDefaultRuleError(RuleError):
    pass


class RuleNotFoundError(RuleError):
    pass


class InvalidRuleError(RuleError):
    pass


class RulesFormatError(ValueError):
    """A persisted rules file could not be parsed."""


class StorageError(RuntimeError):
    """Loading or saving the rules failed."""
