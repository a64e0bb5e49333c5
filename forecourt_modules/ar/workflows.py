"""
Accounts Receivable Workflows.

State machine for the invoice payment lifecycle.  States are the lower-case
form of ``InvoicePaymentStatus`` values; ``invoice_state()`` converts.
"""

from forecourt_engines.invoice_totals import InvoicePaymentStatus
from forecourt_kernel.domain.workflow import Transition, Workflow
from forecourt_kernel.logging_config import get_logger

logger = get_logger("modules.ar.workflows")


def invoice_state(status: InvoicePaymentStatus | str) -> str:
    return InvoicePaymentStatus(status).value.lower()


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

_REVISABLE = ("unpaid", "overdue", "partial")
_REVISED = ("unpaid", "overdue", "partial", "paid")

INVOICE_WORKFLOW = Workflow(
    name="ar_invoice",
    description="Customer invoice payment lifecycle",
    initial_state="unpaid",
    states=(
        "unpaid",
        "partial",
        "paid",
        "overdue",
        "cancelled",
    ),
    transitions=(
        Transition("unpaid", "partial", action="apply_payment"),
        Transition("unpaid", "paid", action="apply_payment"),
        Transition("partial", "partial", action="apply_payment"),
        Transition("partial", "paid", action="apply_payment"),
        Transition("overdue", "partial", action="apply_payment"),
        Transition("overdue", "paid", action="apply_payment"),
        Transition("unpaid", "overdue", action="mark_overdue"),
        *(
            Transition(source, target, action="revise")
            for source in _REVISABLE
            for target in _REVISED
        ),
        Transition("unpaid", "cancelled", action="cancel"),
        Transition("partial", "cancelled", action="cancel"),
        Transition("overdue", "cancelled", action="cancel"),
    ),
    terminal_states=("paid", "cancelled"),
)

logger.info(
    "ar_invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)
