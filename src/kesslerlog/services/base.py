"""Shared plumbing for the page services.

Each page of the app has one service object. It owns the page's loaded rows
and a :class:`PageState` with a ``loading`` flag and a single message slot.
Actions are wrapped with :func:`page_action`, which gives them the same
lifecycle: refuse while another action runs, clear the message, run, then
leave either a success or a failure message behind.
"""

import functools
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from kesslerlog.stats.periods import utc_now
from kesslerlog.store import StoreClient, StoreError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

NOT_CONFIGURED_USER = "Usuário não configurado. Defina KESSLERLOG_USER_ID em Configurações."


def invalid_rows_message(e: ValidationError) -> str:
    """Page message for store rows that do not fit the models."""
    return f"Resposta inválida do banco ({e.error_count()} erro(s))"


class ActionError(Exception):
    """A page action was refused by local validation."""


class PageState(BaseModel):
    loading: bool = False
    message: str | None = None


def page_action(success: str | None = None, failure: str = "Erro ao executar ação") -> Callable[[F], F]:
    """Wrap a service method with the page action lifecycle.

    Args:
        success: Message left when the action returns normally. An action may
            set its own message instead, which is then kept.
        failure: Message used when the raised error has no text of its own.

    Returns:
        A decorator. The wrapped method returns the action's result, or None
        when the action was refused or failed.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: "PageService", *args: Any, **kwargs: Any) -> Any:
            state = self.state
            if state.loading:
                logger.debug("Ignoring %s: another action is running", func.__name__)
                return None

            state.loading = True
            state.message = None
            try:
                result = func(self, *args, **kwargs)
            except (StoreError, ActionError) as e:
                state.message = str(e) or failure
                logger.warning("%s.%s failed: %s", type(self).__name__, func.__name__, state.message)
                return None
            except ValidationError as e:
                state.message = invalid_rows_message(e)
                logger.warning("%s.%s got invalid rows: %s", type(self).__name__, func.__name__, e)
                return None
            finally:
                state.loading = False

            if success and state.message is None:
                state.message = success
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


class PageService:
    """Base class for the page services."""

    def __init__(self, store: StoreClient, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock
        self.state = PageState()

    @property
    def message(self) -> str | None:
        return self.state.message

    @property
    def loading(self) -> bool:
        return self.state.loading

    def set_message(self, message: str | None) -> None:
        self.state.message = message

    def require_user_id(self) -> str:
        """The configured user id; raises ActionError when missing."""
        if not self.store.user_id:
            raise ActionError(NOT_CONFIGURED_USER)
        return self.store.user_id

    def now_iso(self) -> str:
        return self.clock().isoformat()
