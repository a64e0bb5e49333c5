"""
Payroll Workflows.

State machine for a monthly payroll record, from generation through
payment.  States are the lower-case form of ``PayrollStatus`` values.
"""

from forecourt_kernel.domain.workflow import Guard, Transition, Workflow
from forecourt_kernel.logging_config import get_logger
from forecourt_modules.payroll.models import PayrollStatus

logger = get_logger("modules.payroll.workflows")


def payroll_state(status: PayrollStatus | str) -> str:
    return PayrollStatus(status).value.lower()


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ADMIN_OVERRIDE = Guard(
    name="admin_override",
    description="An administrator explicitly authorised changing a paid payroll",
)

logger.info(
    "payroll_workflow_guards_defined",
    extra={"guards": [ADMIN_OVERRIDE.name]},
)


# -----------------------------------------------------------------------------
# Payroll Workflow
# -----------------------------------------------------------------------------

PAYROLL_WORKFLOW = Workflow(
    name="payroll",
    description="Monthly payroll payment lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "paid",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "paid", action="pay"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("paid", "cancelled", action="cancel_payment", guard=ADMIN_OVERRIDE),
        Transition("pending", "pending", action="revise"),
        Transition("paid", "paid", action="revise", guard=ADMIN_OVERRIDE),
    ),
    terminal_states=("paid", "cancelled"),
)

logger.info(
    "payroll_workflow_registered",
    extra={
        "workflow_name": PAYROLL_WORKFLOW.name,
        "state_count": len(PAYROLL_WORKFLOW.states),
        "transition_count": len(PAYROLL_WORKFLOW.transitions),
        "initial_state": PAYROLL_WORKFLOW.initial_state,
    },
)
