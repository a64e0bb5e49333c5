"""
Forecourt Modules.

Persistence and services over the forecourt kernel and engines.  Each
module contains:
- Domain models (the nouns, frozen DTOs)
- ORM models (SQLAlchemy persistence)
- Workflows (state machines), where the entity has a lifecycle
- Services owning the transaction boundary

Modules:
- Cash: Bank accounts and the append-only bank book
- AR: Customer credit accounts and the invoice ledger
- Sales: Recorded fuel sales (source rows for credit invoicing)
- Loans: Employee loans and installment schedules
- Payroll: Monthly payroll generation and salary payments
"""
