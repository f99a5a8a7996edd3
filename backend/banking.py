"""
Banking Layer

Commercial banks that lend to agents under a fractional reserve rule.
Loans create deposits, repayments rebuild reserves, long-overdue loans
are written off at a partial loss, and a bank whose reserves fall below
the reserve requirement fails (with or without deposit insurance).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import CONFIG

logger = logging.getLogger(__name__)

BANK_NAMES = [
    "First National Bank", "Citizens Trust", "Federal Reserve Bank",
    "Commerce Bank", "Merchant Bank", "People's Savings Bank",
    "Capital One Corp", "Heritage Bank",
]


def _clamp_credit(score: float) -> float:
    pop = CONFIG.population
    return max(pop.min_credit_score, min(pop.max_credit_score, score))


@dataclass(slots=True)
class Loan:
    id: int
    bank_id: int
    agent_id: int
    kind: str
    principal: float
    remaining: float
    rate: float
    payment: float
    ticks_overdue: int = 0
    active: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "bank_id": self.bank_id,
            "agent_id": self.agent_id,
            "kind": self.kind,
            "principal": self.principal,
            "remaining": self.remaining,
            "rate": self.rate,
            "payment": self.payment,
            "ticks_overdue": self.ticks_overdue,
            "active": self.active,
        }


@dataclass
class Bank:
    """
    A lender with reserves and a loan book.

    Attributes:
        reserves: Liquid reserves; repayments add to it, write-offs drain it
        total_deposits: Deposits created by outstanding lending
        loan_book: Active loans owned by this bank
        non_performing_rate: Share of active loans with a missed payment
    """

    id: int
    name: str = ""
    reserves: float = CONFIG.banking.initial_reserves
    interest_spread: float = CONFIG.banking.interest_spread
    alive: bool = True
    total_deposits: float = 0.0
    loan_book: List[Loan] = field(default_factory=list)
    non_performing_rate: float = 0.0
    write_offs: float = 0.0
    next_loan_id: int = 1

    def __post_init__(self):
        if not self.name:
            self.name = BANK_NAMES[(self.id - 1) % len(BANK_NAMES)]

    @property
    def active_loans(self) -> List[Loan]:
        return [loan for loan in self.loan_book if loan.active]

    def can_issue_loan(self, agent, kind: str, amount: float, policy) -> Tuple[bool, str]:
        """Underwriting check. Returns (approved, reason)."""
        cfg = CONFIG.banking
        if not self.alive:
            return False, "bank closed"
        if kind not in cfg.loan_terms:
            return False, f"unknown loan type {kind!r}"

        min_reserves = (self.total_deposits + amount) * policy.get("reserve_requirement")
        if self.reserves < min_reserves:
            return False, "insufficient reserves"
        if self.non_performing_rate > cfg.freeze_npl_rate:
            return False, "credit crunch - lending frozen"

        min_score = cfg.min_credit_scores[kind]
        if self.non_performing_rate > cfg.stress_npl_rate:
            min_score += cfg.stress_score_penalty
        if agent.credit_score < min_score:
            return False, "credit score too low"

        total_debt = sum(loan.remaining for loan in agent.loans if loan.active) + amount
        income = max(agent.wage or agent.income or 1.0, 1.0)
        if total_debt / income > cfg.max_debt_to_income:
            return False, "debt-to-income too high"
        return True, "approved"

    def issue_loan(self, agent, kind: str, amount: float, policy) -> Loan:
        """Originate a loan. The principal lands in the agent's wealth as a new deposit."""
        cfg = CONFIG.banking
        risk_premium = max(0.0, (700 - agent.credit_score) / 1000)
        rate = policy.get("interest_rate") + cfg.loan_spreads[kind] + risk_premium
        owed = amount * (1 + rate)
        loan = Loan(
            id=self.next_loan_id,
            bank_id=self.id,
            agent_id=agent.id,
            kind=kind,
            principal=amount,
            remaining=owed,
            rate=rate,
            payment=owed / cfg.loan_terms[kind],
        )
        self.next_loan_id += 1
        self.loan_book.append(loan)
        self.total_deposits += amount
        agent.deposits += amount
        agent.loans.append(loan)
        agent.wealth += amount
        return loan

    def tick(self, ctx) -> None:
        """Collect payments, refresh the NPL rate and check solvency."""
        if not self.alive:
            return

        for loan in self.active_loans:
            agent = ctx.agent_lookup.get(loan.agent_id)
            if agent is None or not agent.alive:
                self.write_off(loan)
                continue
            self._collect_payment(loan, agent)

        active = self.active_loans
        overdue = [loan for loan in active if loan.ticks_overdue > 0]
        self.non_performing_rate = len(overdue) / len(active) if active else 0.0
        self.loan_book = active

        if self.total_deposits > 0 and self.reserves < self.total_deposits * ctx.policy.get("reserve_requirement"):
            self.fail(ctx)

    def _collect_payment(self, loan: Loan, agent) -> None:
        cfg = CONFIG.banking
        payment = min(loan.payment, loan.remaining)
        if agent.wealth >= payment:
            agent.wealth -= payment
            loan.remaining -= payment
            loan.ticks_overdue = 0
            agent.missed_payments = 0
            self.reserves += payment
            self.total_deposits = max(0.0, self.total_deposits - payment)
            agent.deposits = max(0.0, agent.deposits - payment)
            agent.credit_score = _clamp_credit(agent.credit_score + 1)
            if loan.remaining <= 1e-9:
                loan.active = False
                agent.loans = [l for l in agent.loans if l is not loan]
                agent.credit_score = _clamp_credit(agent.credit_score + 10)
                if not agent.active_loans:
                    agent.in_debt_spiral = False
            return

        loan.ticks_overdue += 1
        agent.missed_payments += 1
        agent.credit_score = _clamp_credit(agent.credit_score - 5)
        if agent.missed_payments > 5:
            agent.in_debt_spiral = True
        if loan.ticks_overdue > cfg.write_off_ticks:
            self.write_off(loan)
            agent.credit_score = _clamp_credit(agent.credit_score - 50)
            agent.loans = [l for l in agent.loans if l.active]

    def write_off(self, loan: Loan) -> None:
        loan.active = False
        self.reserves -= loan.remaining * CONFIG.banking.write_off_loss_share
        self.write_offs += loan.remaining

    def forgive_all(self) -> int:
        """Cancel every loan in the book without touching reserves. Returns the count."""
        count = 0
        for loan in self.loan_book:
            if loan.active:
                loan.active = False
                count += 1
        self.loan_book = []
        self.total_deposits = 0.0
        return count

    def fail(self, ctx) -> None:
        """
        Close the bank.

        Borrowers' deposits are lost beyond the insured limit (or entirely
        when deposit insurance is off). Active loans move to a random
        surviving bank, or are forgiven when none is left.
        """
        cfg = CONFIG.banking
        self.alive = False
        insured = bool(ctx.policy.get("deposit_insurance"))
        logger.info(f"Bank {self.name} failed (insured={insured})")

        borrowers = {loan.agent_id for loan in self.loan_book}
        for agent_id in borrowers:
            agent = ctx.agent_lookup.get(agent_id)
            if agent is None or not agent.alive or agent.deposits <= 0:
                continue
            lost = max(0.0, agent.deposits - cfg.insured_limit) if insured else agent.deposits
            lost = min(lost, max(0.0, agent.wealth))
            if lost > 0:
                agent.wealth -= lost
                agent.log_event(f"Lost ${round(lost)} in bank failure")
            agent.deposits = 0.0

        survivors = [b for b in ctx.banks if b.alive and b.id != self.id]
        for loan in self.active_loans:
            if survivors:
                target = survivors[int(ctx.rng.integers(len(survivors)))]
                loan.bank_id = target.id
                target.loan_book.append(loan)
            else:
                loan.active = False
                agent = ctx.agent_lookup.get(loan.agent_id)
                if agent is not None:
                    agent.loans = [l for l in agent.loans if l.active]
                    agent.log_event("Loan forgiven - all banks failed")
        self.loan_book = []

    def to_dict(self) -> Dict[str, object]:
        active = self.active_loans
        return {
            "id": self.id,
            "name": self.name,
            "alive": self.alive,
            "reserves": self.reserves,
            "total_deposits": self.total_deposits,
            "active_loans": len(active),
            "total_loan_value": sum(loan.remaining for loan in active),
            "non_performing_rate": self.non_performing_rate,
            "interest_spread": self.interest_spread,
        }


def find_lender(banks: List[Bank], agent, kind: str, amount: float, policy) -> Optional[Bank]:
    """First living bank that approves the loan, or None."""
    for bank in banks:
        if not bank.alive:
            continue
        approved, _ = bank.can_issue_loan(agent, kind, amount, policy)
        if approved:
            return bank
    return None


def create_initial_banks(count: int = CONFIG.banking.initial_banks, first_id: int = 1) -> List[Bank]:
    return [Bank(id=first_id + i) for i in range(count)]
