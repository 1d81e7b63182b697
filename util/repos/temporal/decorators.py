"""
Temporal decorators for turning repository protocols into activities and
workflow proxies.

1. ``temporal_activity_registration`` wraps the protocol methods of a
   concrete repository as Temporal activities (used by the worker).
2. ``temporal_workflow_proxy`` generates a class whose protocol methods
   call those activities by name (used inside workflows).

Both sides discover the same set of methods, so activity names always
line up.
"""

import functools
import inspect
import logging
from datetime import timedelta
from typing import (
    Any,
    Callable,
    Optional,
    Type,
    TypeVar,
    get_type_hints,
)

from temporalio import activity, workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, ApplicationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_protocol_class(cls: type) -> bool:
    return bool(getattr(cls, "_is_protocol", False))


def _discover_protocol_methods(
    cls_hierarchy: tuple[type, ...],
) -> dict[str, Any]:
    """
    Find the public async methods declared by protocol classes in an MRO.

    Methods are returned as declared on the protocol (the first protocol
    to declare a name wins). When the hierarchy contains no protocol, every
    public async method is used instead.

    Args:
        cls_hierarchy: The class MRO (method resolution order)

    Returns:
        Dict mapping method names to the declaring method objects
    """
    methods: dict[str, Any] = {}

    for base_class in cls_hierarchy:
        if base_class is object or not _is_protocol_class(base_class):
            continue
        for name, member in base_class.__dict__.items():
            if name in methods or name.startswith("_"):
                continue
            if inspect.iscoroutinefunction(member):
                methods[name] = member

    if not methods:
        logger.debug(
            "No protocol methods found, using all public async methods",
            extra={"classes": [c.__name__ for c in cls_hierarchy]},
        )
        for base_class in cls_hierarchy:
            if base_class is object:
                continue
            for name, member in base_class.__dict__.items():
                if name in methods or name.startswith("_"):
                    continue
                if inspect.iscoroutinefunction(member):
                    methods[name] = member

    logger.debug(
        "Protocol method discovery finished",
        extra={"methods": sorted(methods)},
    )
    return methods


def temporal_activity_registration(
    activity_prefix: str,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that registers a repository's protocol methods as
    Temporal activities named ``<activity_prefix>.<method>``.

    The wrapped callable is the implementation the decorated class
    resolves for each name, not the protocol stub.

    Example:
        @temporal_activity_registration("storefront.order_repo.postgresql")
        class TemporalPostgreSQLOrderRepository(PostgreSQLOrderRepository):
            pass

        # get_order -> "storefront.order_repo.postgresql.get_order"
    """

    def decorator(cls: Type[T]) -> Type[T]:
        wrapped_methods = []

        for name in _discover_protocol_methods(cls.__mro__):
            implementation = getattr(cls, name)
            activity_name = f"{activity_prefix}.{name}"

            def create_wrapper_method(
                original_method: Callable[..., Any], method_name: str
            ) -> Callable[..., Any]:
                @functools.wraps(original_method)
                async def wrapper_method(*args: Any, **kwargs: Any) -> Any:
                    return await original_method(*args, **kwargs)

                wrapper_method.__name__ = method_name
                wrapper_method.__qualname__ = f"{cls.__name__}.{method_name}"
                return wrapper_method

            wrapper = create_wrapper_method(implementation, name)
            setattr(cls, name, activity.defn(name=activity_name)(wrapper))
            wrapped_methods.append(name)

        logger.info(
            f"Temporal activity registration applied to {cls.__name__}",
            extra={
                "wrapped_methods": wrapped_methods,
                "activity_prefix": activity_prefix,
            },
        )
        return cls

    return decorator


def _return_type(method: Any) -> Optional[Any]:
    """Resolve a method's return annotation for the data converter."""
    try:
        hints = get_type_hints(method)
    except (NameError, TypeError):
        return None
    result = hints.get("return")
    if result is None or result is type(None):
        return None
    return result


def temporal_workflow_proxy(
    activity_base: str,
    default_timeout_seconds: int = 30,
    retry_methods: Optional[list[str]] = None,
    non_retryable_errors: Optional[list[str]] = None,
    raise_as: Optional[dict[str, Type[Exception]]] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that implements every protocol method of the decorated
    class as a call to the matching activity.

    Args:
        activity_base: Activity name prefix used at registration
        default_timeout_seconds: start_to_close timeout for every call
        retry_methods: Methods that are safe to retry with exponential
            backoff. Every other method runs once.
        non_retryable_errors: Exception type names that must never be
            retried (conditional write conflicts and the like)
        raise_as: Exception type names mapped to the exception class the
            proxy raises in the workflow when an activity fails with that
            type. Mapped names are never retried.

    Results are decoded with the method's return annotation, so pydantic
    models and lists of them come back typed.

    Example:
        @temporal_workflow_proxy(
            ORDER_ACTIVITY_BASE,
            default_timeout_seconds=10,
            retry_methods=["get_order", "find_expired_reservations"],
        )
        class WorkflowOrderRepositoryProxy(OrderRepository):
            pass
    """

    def decorator(cls: Type[T]) -> Type[T]:
        retry_methods_set = set(retry_methods or [])
        error_map = dict(raise_as or {})
        non_retryable = list(non_retryable_errors or [])
        non_retryable += [n for n in error_map if n not in non_retryable]

        backoff_retry_policy = RetryPolicy(
            initial_interval=timedelta(seconds=1),
            backoff_coefficient=2.0,
            maximum_interval=timedelta(seconds=30),
            maximum_attempts=5,
            non_retryable_error_types=non_retryable,
        )
        fail_fast_retry_policy = RetryPolicy(
            initial_interval=timedelta(seconds=1),
            maximum_attempts=1,
            non_retryable_error_types=non_retryable,
        )
        timeout = timedelta(seconds=default_timeout_seconds)

        wrapped_methods = []
        for method_name, original_method in _discover_protocol_methods(
            cls.__mro__
        ).items():
            result_type = _return_type(original_method)
            retry_policy = (
                backoff_retry_policy
                if method_name in retry_methods_set
                else fail_fast_retry_policy
            )

            def create_workflow_method(
                method_name: str,
                result_type: Optional[Any],
                retry_policy: RetryPolicy,
                original_method: Any,
            ) -> Callable[..., Any]:
                activity_name = f"{activity_base}.{method_name}"

                @functools.wraps(original_method)
                async def workflow_method(
                    self: Any, *args: Any, **kwargs: Any
                ) -> Any:
                    if kwargs:
                        raise ValueError(
                            f"kwargs not supported in workflow proxy "
                            f"for {method_name}. Use positional args."
                        )
                    workflow.logger.debug(
                        f"Workflow: calling {activity_name}",
                        extra={"args_count": len(args)},
                    )
                    try:
                        return await workflow.execute_activity(
                            activity_name,
                            args=list(args),
                            start_to_close_timeout=timeout,
                            retry_policy=retry_policy,
                            result_type=result_type,
                        )
                    except ActivityError as e:
                        cause = e.cause
                        if (
                            isinstance(cause, ApplicationError)
                            and cause.type in error_map
                        ):
                            raise error_map[cause.type](cause.message) from e
                        raise

                return workflow_method

            setattr(
                cls,
                method_name,
                create_workflow_method(
                    method_name, result_type, retry_policy, original_method
                ),
            )
            wrapped_methods.append(method_name)

        logger.info(
            f"Temporal workflow proxy applied to {cls.__name__}",
            extra={
                "wrapped_methods": wrapped_methods,
                "activity_base": activity_base,
                "default_timeout_seconds": default_timeout_seconds,
                "retry_methods": sorted(retry_methods_set),
            },
        )
        return cls

    return decorator
