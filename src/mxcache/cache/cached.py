"""Decorator layer turning plain methods into cache-backed operations.

Decorating a method of a :class:`Cacheable` class with :func:`cached`
replaces it with a :class:`Cached` descriptor. Looking the method up on an
instance yields a :class:`BoundCached` exposing five operations that all
share one underlying implementation::

    class Ledger(Cacheable):
        @cached(key=lambda account_id: account_id, level="some", ttl=60)
        def balance(self, account_id):
            return self.api.get("balance", {"account": account_id})

    ledger.balance("A")                 # cached call
    ledger.balance.raw("A")             # always recomputes
    ledger.balance.key("A")             # 'balance:A'
    ledger.balance.has_value("A")       # valid entry present?
    ledger.balance.invalidate("A")      # drop the entry

The cached call bypasses the cache when the operation's ``skip_when``
predicate returns true or when the owner's ``cache_level`` is below the
operation's level. Each instance lazily owns one
:class:`~mxcache.cache.store.CacheStore`, built from the class's collected
operation policies.
"""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, Callable, ClassVar, Generic, Optional, TypeVar

from pydantic import ValidationError

from mxcache.cache.levels import permits, resolve_level
from mxcache.cache.store import CacheStore
from mxcache.exceptions import CacheConfigError
from mxcache.models import ONE_YEAR, CachedOperation, CacheLevel, KeyPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

_store_lock = threading.Lock()


def _check_key_signature(func: Callable[..., Any], cache_key: Callable[..., Any]) -> None:
    """Ensure *cache_key* accepts every argument *func* accepts (minus ``self``)."""
    try:
        func_sig = inspect.signature(func)
        key_sig = inspect.signature(cache_key)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures are taken on trust.
        return

    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    for param in list(func_sig.parameters.values())[1:]:
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            args.append(None)
        elif param.kind is param.KEYWORD_ONLY:
            kwargs[param.name] = None

    try:
        key_sig.bind(*args, **kwargs)
    except TypeError as exc:
        raise CacheConfigError(
            f"Cache key for '{func.__name__}' does not accept its arguments: {exc}"
        ) from exc


def _check_no_arguments(func: Callable[..., Any], name: str) -> None:
    """Reject a keyless operation whose method takes arguments besides ``self``."""
    try:
        params = list(inspect.signature(func).parameters.values())[1:]
    except (TypeError, ValueError):
        return
    if params:
        raise CacheConfigError(f"Cached operation '{name}' takes arguments and needs a cache key")


def build_operation(
    func: Callable[..., Any],
    name: Optional[str] = None,
    key: Optional[Callable[..., Any]] = None,
    level: Any = CacheLevel.NONE,
    ttl: Optional[float] = None,
    skip_when: Optional[Callable[..., Any]] = None,
) -> CachedOperation:
    """Validate options and build the :class:`CachedOperation` for *func*.

    Raises:
        CacheConfigError: If *key* or *skip_when* is not callable, *key*
            cannot take the method's arguments, *key* is missing for a
            method with arguments, or *level* is unknown.
    """
    name = name or func.__name__
    if key is None:
        _check_no_arguments(func, name)
    else:
        if not callable(key):
            raise CacheConfigError(f"Cache key for '{name}' must be callable, got {key!r}")
        _check_key_signature(func, key)
    if skip_when is not None and not callable(skip_when):
        raise CacheConfigError(f"skip_when for '{name}' must be callable, got {skip_when!r}")

    try:
        return CachedOperation(
            name=name,
            cache_key=key,
            level=level,
            ttl=ONE_YEAR if ttl is None else ttl,
            skip_when=skip_when,
        )
    except ValidationError as exc:
        raise CacheConfigError(f"Invalid cache options for '{name}': {exc}") from exc


class Cached(Generic[T]):
    """Descriptor holding a cached operation's implementation and record."""

    def __init__(self, func: Callable[..., T], operation: CachedOperation) -> None:
        self.func = func
        self.operation = operation
        self.__doc__ = func.__doc__
        self.__wrapped__ = func

    def __set_name__(self, owner: type, name: str) -> None:
        if not issubclass(owner, Cacheable):
            raise CacheConfigError(
                f"@cached method '{name}' requires {owner.__name__} to subclass Cacheable"
            )
        if name != self.operation.name:
            self.operation = self.operation.model_copy(update={"name": name})

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return BoundCached(self, instance)

    @property
    def name(self) -> str:
        return self.operation.name

    def derive_key(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
        """Map call arguments to the cache key, namespaced by operation name."""
        op = self.operation
        if op.cache_key is None:
            return op.name
        return f"{op.name}:{op.cache_key(*args, **kwargs)}"

    def __repr__(self) -> str:
        return f"<Cached {self.operation.name} level={self.operation.level}>"


class BoundCached(Generic[T]):
    """A :class:`Cached` operation bound to one owner instance."""

    def __init__(self, descriptor: Cached[T], owner: Any) -> None:
        self._descriptor = descriptor
        self._owner = owner

    @property
    def operation(self) -> CachedOperation:
        return self._descriptor.operation

    def __call__(self, *args: Any, **kwargs: Any) -> T:
        """Return the cached result, computing it through :meth:`raw` on a miss."""
        if self._skip(args):
            return self.raw(*args, **kwargs)
        return self._owner.cache_store.fetch_or_compute(
            self.key(*args, **kwargs),
            lambda: self.raw(*args, **kwargs),
            ttl=self.operation.ttl,
        )

    def raw(self, *args: Any, **kwargs: Any) -> T:
        """Call the undecorated implementation, bypassing the cache."""
        return self._descriptor.func(self._owner, *args, **kwargs)

    def key(self, *args: Any, **kwargs: Any) -> str:
        return self._descriptor.derive_key(args, kwargs)

    def has_value(self, *args: Any, **kwargs: Any) -> bool:
        """Return whether a valid cached result exists, without computing."""
        return self._owner.cache_store.valid(self.key(*args, **kwargs))

    def invalidate(self, *args: Any, **kwargs: Any) -> bool:
        """Drop the cached result for these arguments."""
        return self._owner.cache_store.delete(self.key(*args, **kwargs))

    def _skip(self, args: tuple[Any, ...]) -> bool:
        op = self.operation
        if op.skip_when is not None and op.skip_when(self._owner, op.name, args):
            return True
        runtime = resolve_level(None, self._owner)
        if not permits(runtime, op.level):
            logger.debug("Bypassing cache for %s: level %s below %s", op.name, runtime, op.level)
            return True
        return False

    def __repr__(self) -> str:
        return f"<BoundCached {self.operation.name} of {self._owner!r}>"


def cached(
    func: Optional[Callable[..., T]] = None,
    *,
    key: Optional[Callable[..., Any]] = None,
    level: Any = CacheLevel.NONE,
    ttl: Optional[float] = None,
    skip_when: Optional[Callable[..., Any]] = None,
) -> Any:
    """Make a method cache-backed.

    Usable bare (``@cached``) or with options (``@cached(key=..., ttl=60)``).

    Args:
        func: The method, when used without parentheses.
        key: Maps the method's arguments (without ``self``) to a string.
            Required when the method takes arguments; for argument-less
            methods the key is the method name.
        level: Minimum :class:`~mxcache.models.CacheLevel` for caching.
        ttl: Time-to-live in seconds (default one year).
        skip_when: ``(owner, name, args) -> bool``; true bypasses the cache.

    Raises:
        CacheConfigError: At decoration time, for invalid options.
    """

    def decorator(f: Callable[..., T]) -> Cached[T]:
        return Cached(f, build_operation(f, key=key, level=level, ttl=ttl, skip_when=skip_when))

    if func is not None:
        return decorator(func)
    return decorator


class Cacheable:
    """Mixin giving each instance its own lazily created :class:`CacheStore`.

    Args:
        store_factory: Callable building the store, called with ``config``
            and ``context`` keyword arguments. Defaults to the class-level
            :attr:`store_factory`.
    """

    store_factory: ClassVar[Callable[..., CacheStore]] = CacheStore

    def __init__(self, store_factory: Optional[Callable[..., CacheStore]] = None) -> None:
        self._store_factory = store_factory

    @classmethod
    def cache_operations(cls) -> dict[str, CachedOperation]:
        """Return the cached operations of this class and its bases, by name.

        Collected on each call so operations registered on a base class
        after a subclass was defined are included.
        """
        operations: dict[str, CachedOperation] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, Cached):
                    operations[name] = attr.operation
        return operations

    @classmethod
    def cache_policies(cls) -> dict[str, KeyPolicy]:
        """Key-pattern policy table covering every cached operation."""
        policies: dict[str, KeyPolicy] = {}
        for name, op in cls.cache_operations().items():
            policies[name] = op.policy()
            policies[f"{name}:*"] = op.policy()
        return policies

    @property
    def cache_store(self) -> CacheStore:
        store = self.__dict__.get("_cache_store")
        if store is not None:
            return store
        with _store_lock:
            store = self.__dict__.get("_cache_store")
            if store is None:
                factory = self.__dict__.get("_store_factory") or type(self).store_factory
                context = self if hasattr(self, "cache_level") else None
                store = factory(config=type(self).cache_policies(), context=context)
                self.__dict__["_cache_store"] = store
        return store

    def clear_cache(self) -> None:
        """Drop every cached value held by this instance."""
        self.cache_store.clear()


def register_cached(
    cls: type,
    name: str,
    *,
    key: Optional[Callable[..., Any]] = None,
    level: Any = CacheLevel.NONE,
    ttl: Optional[float] = None,
    skip_when: Optional[Callable[..., Any]] = None,
) -> Cached[Any]:
    """Wrap the existing method *name* of *cls* as a cached operation.

    Registering a name that is already cached is a no-op and returns the
    existing descriptor.

    Raises:
        CacheConfigError: If *cls* is not a :class:`Cacheable` subclass, has
            no callable attribute *name*, or the options are invalid.
    """
    if not issubclass(cls, Cacheable):
        raise CacheConfigError(f"{cls.__name__} must subclass Cacheable to register '{name}'")
    try:
        attr = inspect.getattr_static(cls, name)
    except AttributeError:
        raise CacheConfigError(f"{cls.__name__} has no method '{name}'") from None

    if isinstance(attr, Cached):
        return attr
    if not callable(attr):
        raise CacheConfigError(f"{cls.__name__}.{name} is not callable")

    descriptor: Cached[Any] = Cached(
        attr, build_operation(attr, name=name, key=key, level=level, ttl=ttl, skip_when=skip_when)
    )
    setattr(cls, name, descriptor)
    return descriptor
