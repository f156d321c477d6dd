# sis/services/base_service.py
"""Base service with common lookups and the transactional operation boundary."""
import functools
import logging
from typing import Any, Callable, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, SystemClock
from ..core.config import Settings, settings as default_settings
from ..core.exceptions import InternalError, SISException, TransientError
from ..schemas.results import ServiceResult

logger = logging.getLogger(__name__)

# Define generic type
T = TypeVar('T')


def service_operation(action: str, success_message: str = ""):
    """Run a service method as one all-or-nothing unit.

    Commits when the method returns, rolls back on any raised error and
    converts it into a failed ``ServiceResult``. ``SQLAlchemyError`` is
    reported as a transient failure; anything else unexpected (a failing
    post-approval handler, a bug) as an internal error.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> ServiceResult:
            try:
                data = await func(self, *args, **kwargs)
                await self.db.commit()
            except SISException as e:
                await self.db.rollback()
                logger.info("%s refused: %s (%s)", action, e.code, e.message)
                return ServiceResult.fail(e)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("Database error during %s: %s", action, e)
                return ServiceResult.fail(
                    TransientError(f"Failed to {action.replace('_', ' ')}; no changes were saved.")
                )
            except Exception:
                await self.db.rollback()
                logger.exception("Unexpected error during %s", action)
                return ServiceResult.fail(
                    InternalError(f"Failed to {action.replace('_', ' ')}; no changes were saved.")
                )
            return ServiceResult.ok(data, success_message)
        return wrapper
    return decorator


def read_operation(action: str):
    """Like ``service_operation`` for read-only queries: nothing to commit."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> ServiceResult:
            try:
                data = await func(self, *args, **kwargs)
            except SISException as e:
                return ServiceResult.fail(e)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("Database error during %s: %s", action, e)
                return ServiceResult.fail(TransientError(f"Failed to {action.replace('_', ' ')}."))
            except Exception:
                await self.db.rollback()
                logger.exception("Unexpected error during %s", action)
                return ServiceResult.fail(InternalError(f"Failed to {action.replace('_', ' ')}."))
            return ServiceResult.ok(data)
        return wrapper
    return decorator


class BaseService(Generic[T]):
    def __init__(
        self,
        model: Type[T],
        db: AsyncSession,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self.model = model
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings or default_settings

    async def get(self, id: Any, for_update: bool = False) -> Optional[T]:
        stmt = select(self.model).where(self.model.id == id)
        if hasattr(self.model, 'is_deleted'):
            stmt = stmt.where(self.model.is_deleted.is_(False))
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, obj: T) -> T:
        """Stage a new row inside the current unit of work."""
        self.db.add(obj)
        await self.db.flush()
        return obj
