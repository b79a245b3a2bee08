from typing import Any, Awaitable, Callable, Dict

from langgraph.graph import END

from services.errors import MalformedPayload


class StepFailed(Exception):
    """A workflow node failed; carries the step name for error attribution."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


def bind_step(name: str, node: Callable[[Dict[str, Any], Any], Awaitable[Dict[str, Any]]], ctx: Any):
    """
    Turn ``node(state, ctx)`` into a single-argument LangGraph node.

    The node records itself as ``current_step``. Malformed payloads pass through
    unchanged; any other exception is re-raised as :class:`StepFailed`.
    """
    async def run(state: Dict[str, Any]) -> Dict[str, Any]:
        state["current_step"] = name
        try:
            return await node(state, ctx)
        except (MalformedPayload, StepFailed):
            raise
        except Exception as e:
            raise StepFailed(name, e) from e

    run.__name__ = node.__name__
    return run


def continue_unless(*statuses: str) -> Callable[[Dict[str, Any]], str]:
    """Conditional-edge router: stop the graph when the state reached one of ``statuses``."""
    def decide(state: Dict[str, Any]) -> str:
        return "stop" if state.get("status") in statuses else "continue"
    return decide


def edges(next_node: str) -> Dict[str, str]:
    return {"continue": next_node, "stop": END}
