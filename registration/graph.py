import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from langgraph.graph import StateGraph, START, END
from loguru import logger

from registration.state import FormInput, RegistrationState
from registration.validator import RegistrationValidator

SuccessHandler = Callable[[FormInput], Union[None, Awaitable[None]]]
FailureHandler = Callable[[BaseException], None]


class SubmissionGraphFactory:
    """
    validate -> (rejected) END
             -> (accepted) submit -> END

    ``on_success`` runs inside the submit node. Anything it raises is caught
    there and handed to ``on_failure``, so a run of the graph always finishes
    with an outcome of "rejected", "submitted" or "failed".
    """

    def __init__(
        self,
        validator: RegistrationValidator,
        on_success: SuccessHandler,
        on_failure: Optional[FailureHandler] = None,
    ):
        self.validator = validator
        self.on_success = on_success
        self.on_failure = on_failure

    async def submit_node(self, state: RegistrationState) -> Dict[str, Any]:
        payload = state.snapshot()
        try:
            result = self.on_success(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.exception("Form submission error")
            if self.on_failure is not None:
                self.on_failure(exc)
            return {"outcome": "failed", "submission_error": type(exc).__name__}
        return {"outcome": "submitted", "submission_error": None}

    def build(self) -> StateGraph:
        g = StateGraph(RegistrationState)

        g.add_node("validate", self.validator.validate_form)
        g.add_node("submit", self.submit_node)

        g.add_edge(START, "validate")
        g.add_conditional_edges(
            "validate",
            self.validator.should_submit,
            {"end": END, "submit": "submit"},
        )
        g.add_edge("submit", END)

        return g

    def compile(self, checkpointer: Any):
        return self.build().compile(checkpointer=checkpointer)
