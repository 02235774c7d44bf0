from app.workflows.schemas import (
    WorkflowCompileRequest,
    WorkflowCompileResponse,
    WorkflowExpandRequest,
    WorkflowExpandResponse,
    WorkflowRunRequest,
    WorkflowRunResponse,
)
from app.workflows.service import (
    compile_workflow_payload,
    expand_chain_payload,
    run_workflow_payload,
)

__all__ = [
    "WorkflowCompileRequest",
    "WorkflowCompileResponse",
    "WorkflowExpandRequest",
    "WorkflowExpandResponse",
    "WorkflowRunRequest",
    "WorkflowRunResponse",
    "compile_workflow_payload",
    "expand_chain_payload",
    "run_workflow_payload",
]
