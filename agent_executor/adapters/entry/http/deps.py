from fastapi import Request

from ....workers.execution_supervisor import ExecutionSupervisor


def get_supervisor(request: Request) -> ExecutionSupervisor:
    """
    Resolve the running supervisor (wired use cases) from FastAPI app state.
    """
    sup = getattr(request.app.state, "supervisor", None)
    if sup is None or sup.coordinator is None:
        raise RuntimeError("Supervisor is not started in app.state.supervisor")
    return sup
