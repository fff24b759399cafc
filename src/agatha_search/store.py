"""Reducer-style store holding the authoritative WorkflowState.

The store is the single writer of workflow state. Callers change state only
by dispatching one of the action types below; ``reduce`` maps
``(state, action)`` to a new immutable snapshot and performs no I/O.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import assert_never

from .events import Emitter, Listener, Unsubscribe
from .models import SearchQuery, SearchResult, WorkflowState, WorkflowStatus

logger = logging.getLogger(__name__)


# --- Actions ---


@dataclass(frozen=True)
class SetQuery:
    query: SearchQuery


@dataclass(frozen=True)
class SetStatus:
    status: WorkflowStatus


@dataclass(frozen=True)
class SetResults:
    results: tuple[SearchResult, ...]


@dataclass(frozen=True)
class SetError:
    message: str | None


@dataclass(frozen=True)
class SetNotice:
    message: str | None


@dataclass(frozen=True)
class ClearSearch:
    pass


@dataclass(frozen=True)
class SelectResult:
    result_id: str | None


@dataclass(frozen=True)
class SetCursor:
    index: int


@dataclass(frozen=True)
class ResetState:
    pass


Action = SetQuery | SetStatus | SetResults | SetError | SetNotice | ClearSearch | SelectResult | SetCursor | ResetState

INITIAL_STATE = WorkflowState()


def reduce(state: WorkflowState, action: Action) -> WorkflowState:
    """Pure transition function."""
    match action:
        case SetQuery(query=query):
            return state.model_copy(update={"query": query, "status": WorkflowStatus.SEARCHING, "error": None, "notice": None})
        case SetStatus(status=status):
            return state.model_copy(update={"status": status})
        case SetResults(results=results):
            return state.model_copy(update={"results": results, "status": WorkflowStatus.COMPLETE, "error": None})
        case SetError(message=None):
            return state.model_copy(update={"error": None})
        case SetError(message=message):
            return state.model_copy(update={"error": message, "status": WorkflowStatus.ERROR})
        case SetNotice(message=message):
            return state.model_copy(update={"notice": message})
        case ClearSearch():
            return state.model_copy(
                update={
                    "query": None,
                    "results": (),
                    "status": WorkflowStatus.IDLE,
                    "error": None,
                    "notice": None,
                    "selected_result_id": None,
                    "cursor_index": 0,
                }
            )
        case SelectResult(result_id=result_id):
            return state.model_copy(update={"selected_result_id": result_id})
        case SetCursor(index=index):
            return state.model_copy(update={"cursor_index": index})
        case ResetState():
            return INITIAL_STATE
        case _:
            assert_never(action)


class WorkflowStore:
    """Holds WorkflowState and notifies subscribers after every transition."""

    def __init__(self, initial: WorkflowState | None = None):
        self._state = initial or INITIAL_STATE
        self._subscribers: Emitter[WorkflowState] = Emitter("workflow state")

    @property
    def state(self) -> WorkflowState:
        return self._state

    def subscribe(self, listener: Listener[WorkflowState]) -> Unsubscribe:
        return self._subscribers.subscribe(listener)

    def dispatch(self, action: Action) -> WorkflowState:
        new_state = reduce(self._state, action)
        if new_state != self._state:
            self._state = new_state
            logger.debug(f"{type(action).__name__} -> {new_state.status.value}")
            self._subscribers.emit(new_state)
        return self._state

    # --- Search transitions ---

    def set_query(self, query: SearchQuery) -> WorkflowState:
        return self.dispatch(SetQuery(query))

    def set_status(self, status: WorkflowStatus) -> WorkflowState:
        return self.dispatch(SetStatus(status))

    def set_results(self, results: Sequence[SearchResult]) -> WorkflowState:
        return self.dispatch(SetResults(tuple(results)))

    def set_error(self, message: str | None) -> WorkflowState:
        return self.dispatch(SetError(message))

    def set_notice(self, message: str | None) -> WorkflowState:
        return self.dispatch(SetNotice(message))

    def clear(self) -> WorkflowState:
        return self.dispatch(ClearSearch())

    def reset(self) -> WorkflowState:
        return self.dispatch(ResetState())

    # --- Selection ---

    def select_result(self, result_id: str | None) -> WorkflowState:
        return self.dispatch(SelectResult(result_id))

    def set_cursor(self, index: int) -> WorkflowState:
        return self.dispatch(SetCursor(index))

    def focus_result(self, result_id: str) -> WorkflowState:
        """Select a result and move the cursor to it. Unknown ids are ignored."""
        for index, result in enumerate(self._state.results):
            if result.id == result_id:
                self.select_result(result_id)
                return self.set_cursor(index)
        return self._state

    def select_next(self) -> WorkflowState:
        results = self._state.results
        if not results:
            return self._state
        current = self._state.current_result_index
        next_index = current + 1 if current < len(results) - 1 else 0
        return self.focus_result(results[next_index].id)

    def select_previous(self) -> WorkflowState:
        results = self._state.results
        if not results:
            return self._state
        current = self._state.current_result_index
        prev_index = current - 1 if current > 0 else len(results) - 1
        return self.focus_result(results[prev_index].id)
