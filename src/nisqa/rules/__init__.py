from nisqa.rules.evaluator import RuleEvaluator
from nisqa.rules.expressions import ExpressionOracle, parse_rule
from nisqa.rules.interfaces import RuleOracle, RuleSet
from nisqa.rules.params import rule_parameters
from nisqa.rules.remote import HttpRuleOracle

__all__ = [
    "ExpressionOracle",
    "HttpRuleOracle",
    "RuleEvaluator",
    "RuleOracle",
    "RuleSet",
    "parse_rule",
    "rule_parameters",
]
