"""Memoizing, thread-safe registry of compiled named schemas.

:class:`SchemaRegistry` compiles a type definition the first time its name
is requested and hands out the same frozen object on every later request.

Each name moves through these states::

    absent --claim--> pending --success--> ready   (terminal)
                         |
                         +-----failure---> failed  (terminal)

A short table lock guards the transitions only; the compilation itself runs
outside any lock, so unrelated names compile in parallel. The first thread
to claim a name compiles it; other threads calling :meth:`SchemaRegistry.get`
for the same name wait on that entry's event and reuse its result.

A compilation that meets a reference to a name still pending emits a
:class:`~specreg.models.NamedRef` and carries on, but it does not settle
until those names have:

* a name pending further up the same thread's stack settles together with
  it, so a type compiled inline inside a cycle fails when the cycle does;
* a name some other thread is compiling is waited for before settling, and
  its failure becomes this name's failure. A wait that would close a loop of
  threads waiting on each other is skipped; the loop members then settle on
  their own results.

A name whose whole definition is a reference back to itself (directly or
through other pure aliases) has no structure and compiles to ``any``.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Iterator, Optional

from specreg.exceptions import UnresolvedReferenceError
from specreg.models import ANY, NamedRef, ResolvedSchema
from specreg.parser.document import DocumentStore, schema_name
from specreg.schema.resolver import SchemaResolver

logger = logging.getLogger(__name__)


class EntryState(str, enum.Enum):
    """Lifecycle state of one registry entry."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class _Entry:
    __slots__ = ("state", "schema", "error", "owner", "done")

    def __init__(self, state: EntryState, owner: Optional[int] = None) -> None:
        self.state = state
        self.schema: Optional[ResolvedSchema] = None
        self.error: Optional[UnresolvedReferenceError] = None
        self.owner = owner
        self.done = threading.Event()


class _Frame:
    """One compilation on a thread's stack and what it still depends on."""

    __slots__ = ("name", "entry", "local", "foreign", "held")

    def __init__(self, name: str, entry: _Entry) -> None:
        self.name = name
        self.entry = entry
        # Pending names owned by this thread.
        self.local: set[str] = set()
        # Pending entries owned by other threads.
        self.foreign: dict[str, _Entry] = {}
        # Finished inline compilations waiting to settle with this one.
        self.held: list[_Frame] = []

    def adopt(self, child: _Frame, schema: ResolvedSchema) -> None:
        child.entry.schema = schema
        self.local |= child.local
        self.foreign.update(child.foreign)
        self.held.extend(child.held)
        self.held.append(child)


class SchemaRegistry:
    """Lazy, single-flight cache of resolved schemas keyed by type name.

    Args:
        store: The document holding the type definitions.

    Example::

        registry = SchemaRegistry(store)
        pet = registry.get("Pet")
        assert registry.get("Pet") is pet
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._pointers: dict[str, str] = store.schema_pool()
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}
        # Thread ident -> the entry that thread is blocked on while settling.
        self._waiting: dict[int, _Entry] = {}
        self._local = threading.local()
        self._resolver = SchemaResolver(store, self)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def get(self, name: str) -> ResolvedSchema:
        """Return the compiled schema for *name*, compiling it on first use.

        Raises:
            UnresolvedReferenceError: If *name* is unknown, or its
                definition (transitively) references a missing type. The
                failure is cached until :meth:`clear`.
        """
        entry = self._entries.get(name)
        if entry is not None and entry.state is not EntryState.PENDING:
            return self._settled(name, entry)

        pointer = self._pointer_for(name)
        claimed, entry = self._claim(name)
        if claimed:
            return self._compile(name, pointer, entry, frozenset())

        if entry.state is EntryState.PENDING:
            if entry.owner == threading.get_ident():
                # Re-entered from within this thread's own compilation.
                return NamedRef(name=name)
            entry.done.wait()
        return self._settled(name, entry)

    def register(self, name: str, schema: ResolvedSchema) -> ResolvedSchema:
        """Install *schema* under *name*, replacing any existing entry.

        Meant for tests and hand-written schemas.
        """
        entry = _Entry(EntryState.READY)
        entry.schema = schema
        entry.done.set()
        with self._lock:
            self._entries[name] = entry
        return schema

    def clear(self) -> None:
        """Forget every compiled, failed and registered entry."""
        with self._lock:
            self._entries.clear()

    def peek(self, name: str) -> Optional[ResolvedSchema]:
        """Return the compiled schema for *name* without compiling anything.

        Inside a compilation this also sees the names this thread finished
        but has not settled yet.
        """
        entry = self._entries.get(name)
        if entry is None:
            return None
        if entry.state is EntryState.READY:
            return entry.schema
        if entry.state is EntryState.PENDING and entry.owner == threading.get_ident():
            return entry.schema
        return None

    def resolve_node(self, node: Any) -> ResolvedSchema:
        """Resolve an anonymous schema fragment (e.g. an inline request body).

        Named types it references are compiled into the registry as usual.
        """
        return self._resolver.resolve(node)

    def compile_all(self) -> dict[str, UnresolvedReferenceError]:
        """Compile every named type in the document.

        A broken definition does not stop the batch: its failure is logged,
        recorded, and returned.

        Returns:
            ``{name: error}`` for every name that failed to compile.
        """
        failures: dict[str, UnresolvedReferenceError] = {}
        for name in list(self._pointers):
            try:
                self.get(name)
            except UnresolvedReferenceError as exc:
                logger.warning("Schema %s failed to compile: %s", name, exc)
                failures[name] = exc
        logger.debug(
            "Compiled %d schemas (%d failed)", len(self._pointers) - len(failures), len(failures)
        )
        return failures

    def state(self, name: str) -> Optional[EntryState]:
        """Return the state of *name*, or ``None`` when it was never requested."""
        entry = self._entries.get(name)
        return entry.state if entry is not None else None

    @property
    def failures(self) -> dict[str, UnresolvedReferenceError]:
        """Every recorded compilation failure, by schema name."""
        with self._lock:
            return {
                name: entry.error
                for name, entry in self._entries.items()
                if entry.state is EntryState.FAILED and entry.error is not None
            }

    def names(self) -> list[str]:
        """Names of the type definitions found in the document."""
        return list(self._pointers)

    def __contains__(self, name: object) -> bool:
        return name in self._pointers or name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._pointers)

    # ------------------------------------------------------------------ #
    # Called by SchemaResolver
    # ------------------------------------------------------------------ #

    def resolve_reference(self, ref: str, visiting: frozenset[str]) -> ResolvedSchema:
        """Resolve a ``$ref`` met while compiling, breaking cycles.

        Returns :class:`~specreg.models.NamedRef` when the name is on the
        current stack, already compiled, or being compiled elsewhere;
        otherwise compiles the target and returns it inline.
        """
        name = schema_name(ref)
        if name in visiting:
            self._depend_on(name, self._entries.get(name))
            return NamedRef(name=name)

        claimed, entry = self._claim(name)
        if claimed:
            return self._compile(name, ref, entry, visiting)
        if entry.state is EntryState.PENDING:
            self._depend_on(name, entry)
        if entry.state is EntryState.FAILED:
            assert entry.error is not None
            raise entry.error
        return NamedRef(name=name)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _pointer_for(self, name: str) -> str:
        pointer = self._pointers.get(name)
        if pointer is not None:
            return pointer
        if "/" in name:
            return f"#/{name}"
        raise UnresolvedReferenceError(name, reason="no such type in the document")

    def _claim(self, name: str) -> tuple[bool, _Entry]:
        with self._lock:
            entry = self._entries.get(name)
            if entry is not None:
                return False, entry
            entry = _Entry(EntryState.PENDING, owner=threading.get_ident())
            self._entries[name] = entry
            return True, entry

    def _stack(self) -> list[_Frame]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def _depend_on(self, name: str, entry: Optional[_Entry]) -> None:
        """Note that the compilation in progress refers to pending *name*."""
        if entry is None or entry.state is not EntryState.PENDING:
            return
        stack = self._stack()
        if entry.owner == threading.get_ident():
            if stack:
                stack[-1].local.add(name)
        elif stack:
            stack[-1].foreign[name] = entry
        else:
            # Anonymous fragment outside any compilation: nothing to deadlock on.
            entry.done.wait()

    def _compile(
        self, name: str, pointer: str, entry: _Entry, visiting: frozenset[str]
    ) -> ResolvedSchema:
        logger.debug("Compiling schema %s", name)
        stack = self._stack()
        frame = _Frame(name, entry)
        parent = stack[-1] if stack else None
        stack.append(frame)
        try:
            node = self._store.resolve(pointer)
            schema = self._resolver.resolve(node, visiting | {name})
            if isinstance(schema, NamedRef) and schema.name == name:
                logger.debug("Schema %s only refers to itself; compiling it as any", name)
                schema = ANY
            self._finish(frame, schema, parent)
        except UnresolvedReferenceError as exc:
            for done in (frame, *frame.held):
                self._settle(done.name, done.entry, error=exc)
            raise
        except BaseException:
            # Unexpected failure: drop the entries so the names can be retried.
            for dropped in (frame, *frame.held):
                with self._lock:
                    if self._entries.get(dropped.name) is dropped.entry:
                        del self._entries[dropped.name]
                dropped.entry.done.set()
            raise
        finally:
            stack.pop()
        return schema

    def _finish(self, frame: _Frame, schema: ResolvedSchema, parent: Optional[_Frame]) -> None:
        """Settle *frame* now, or hand it to *parent* to settle later."""
        finished = {frame.name, *(held.name for held in frame.held)}
        frame.local = {name for name in frame.local - finished if self._pending_here(name)}
        if frame.local and parent is not None:
            parent.adopt(frame, schema)
            return

        for name, dependency in frame.foreign.items():
            self._wait_for(dependency)
            if dependency.state is EntryState.FAILED:
                assert dependency.error is not None
                logger.debug("Schema %s depends on failed schema %s", frame.name, name)
                raise dependency.error

        self._settle(frame.name, frame.entry, schema=schema)
        for held in frame.held:
            assert held.entry.schema is not None
            self._settle(held.name, held.entry, schema=held.entry.schema)

    def _pending_here(self, name: str) -> bool:
        entry = self._entries.get(name)
        return (
            entry is not None
            and entry.state is EntryState.PENDING
            and entry.owner == threading.get_ident()
        )

    def _wait_for(self, entry: _Entry) -> None:
        """Block until *entry* settles, unless that would deadlock."""
        me = threading.get_ident()
        with self._lock:
            if entry.done.is_set():
                return
            owner = entry.owner
            seen: set[int] = set()
            while owner is not None and owner not in seen:
                if owner == me:
                    return
                seen.add(owner)
                blocked_on = self._waiting.get(owner)
                owner = blocked_on.owner if blocked_on is not None else None
            self._waiting[me] = entry
        try:
            entry.done.wait()
        finally:
            with self._lock:
                self._waiting.pop(me, None)

    def _settle(
        self,
        name: str,
        entry: _Entry,
        schema: Optional[ResolvedSchema] = None,
        error: Optional[UnresolvedReferenceError] = None,
    ) -> None:
        with self._lock:
            if error is not None:
                entry.state = EntryState.FAILED
                entry.error = error
                entry.schema = None
            else:
                entry.state = EntryState.READY
                entry.schema = schema
        entry.done.set()

    def _settled(self, name: str, entry: _Entry) -> ResolvedSchema:
        if entry.state is EntryState.READY:
            assert entry.schema is not None
            return entry.schema
        if entry.state is EntryState.FAILED:
            assert entry.error is not None
            raise entry.error
        # The compiling thread abandoned the entry; start over.
        return self.get(name)
