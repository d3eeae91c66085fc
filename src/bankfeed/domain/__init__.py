"""Domain layer for bankfeed."""

from bankfeed.domain.accounts import AccountService
from bankfeed.domain.bank_import import ImportService
from bankfeed.domain.invoice_matching import InvoiceMatchService, find_invoice_matches
from bankfeed.domain.lifecycle import TransactionLifecycleService
from bankfeed.domain.rules import BankRuleService, evaluate_rules, rule_matches
from bankfeed.domain.statement_parser import parse_statement
from bankfeed.domain.transactions import TransactionService

__all__ = [
    "AccountService",
    "BankRuleService",
    "ImportService",
    "InvoiceMatchService",
    "TransactionLifecycleService",
    "TransactionService",
    "evaluate_rules",
    "find_invoice_matches",
    "parse_statement",
    "rule_matches",
]
