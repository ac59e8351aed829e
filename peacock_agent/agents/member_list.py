# =============================================================================
# Member List — Loan Accounts Rendered as a Markdown List
# =============================================================================
#
# Turns the /api/account/loan payload into one line per member:
#
#   - Asha Rao - Active
#   - Asha Rao - Active, Loan Balance: 1,25,000
#
# The chat UI recognises the "- <name> - Active|Inactive" shape and renders
# it as a member list, so the line format is part of the contract.
#
# DESIGN DECISION: Loan balance falls back through the fields the upstream
# API has used over time: loanBalance → currentLoanBalance → balance → the
# latest ACTIVE entry in loanHistory (its balance, else its amount). An
# account with none of these owes 0.
# =============================================================================

from __future__ import annotations

from typing import Any

NO_MEMBERS_MESSAGE = "No members found."

_BALANCE_FIELDS = ("loanBalance", "currentLoanBalance", "balance")
_ACTIVE_LOAN_STATUSES = ("ACTIVE", "active")


def calculate_loan_balance(account: dict[str, Any]) -> float:
    """Current loan balance of one loan account."""
    for key in _BALANCE_FIELDS:
        if account.get(key) is not None:
            return account[key]

    active_loans = [
        loan for loan in account.get("loanHistory") or []
        if loan.get("status") in _ACTIVE_LOAN_STATUSES
    ]
    if not active_loans:
        return 0

    latest = active_loans[-1]
    if latest.get("balance") is not None:
        return latest["balance"]
    if latest.get("amount") is not None:
        return latest["amount"]
    return 0


def format_indian_number(value: float) -> str:
    """
    Group digits the Indian way (12,34,567) with up to 3 decimals.

    Matches what en-IN locale formatting shows in the chat UI.
    """
    rounded = round(abs(value), 3)
    whole, _, fraction = f"{rounded:.3f}".partition(".")
    fraction = fraction.rstrip("0")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join([*groups, tail])

    sign = "-" if value < 0 and rounded else ""
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def format_members_list(
    payload: Any,
    include_inactive: bool = True,
    include_loan_balance: bool = False,
) -> str:
    """
    Render the loan-accounts payload as a markdown list.

    Args:
        payload: Body of POST /api/account/loan ({"accounts": [...]}).
        include_inactive: Keep members whose account is not active.
        include_loan_balance: Append "Loan Balance: <amount>" to each line.
    """
    accounts = payload.get("accounts") if isinstance(payload, dict) else None
    if not accounts:
        return NO_MEMBERS_MESSAGE

    lines = []
    for account in accounts:
        if not include_inactive and not account.get("active"):
            continue
        name = account.get("name") or "Unknown"
        status = "Active" if account.get("active") else "Inactive"
        line = f"- {name} - {status}"
        if include_loan_balance:
            balance = format_indian_number(calculate_loan_balance(account))
            line = f"{line}, Loan Balance: {balance}"
        lines.append(line)

    return "\n".join(lines)
