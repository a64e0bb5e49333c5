"""
Employee Loan Workflows.

State machine for the loan lifecycle, from application through approval
to repayment.
"""

from forecourt_kernel.domain.workflow import Transition, Workflow
from forecourt_kernel.logging_config import get_logger

logger = get_logger("modules.loans.workflows")


LOAN_WORKFLOW = Workflow(
    name="employee_loan",
    description="Employee loan lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "active",
        "completed",
        "rejected",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "active", action="approve"),
        Transition("pending", "rejected", action="reject"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("active", "cancelled", action="cancel"),
        Transition("active", "completed", action="complete"),
        Transition("completed", "active", action="reopen"),
    ),
    terminal_states=("rejected", "cancelled"),
)

logger.info(
    "loan_workflow_registered",
    extra={
        "workflow_name": LOAN_WORKFLOW.name,
        "state_count": len(LOAN_WORKFLOW.states),
        "transition_count": len(LOAN_WORKFLOW.transitions),
        "initial_state": LOAN_WORKFLOW.initial_state,
    },
)
