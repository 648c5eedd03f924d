"""
Key-value / list command interface

Abstract base class for the storage engine. Only the commands this service
issues are part of the interface:

- JSON documents:  json_set / json_get
- Plain values:    set_value / get_value
- Ordered lists:   lpush / rpop / lindex / lset / llen (head is index 0)
- Keys:            delete / scan (prefix match)
- Whole store:     flush_all

``execute`` replays script verbs (JSON.SET, SET, LPUSH, DEL, FLUSHALL)
against these primitives. It is the command interface used by the import
codec.
"""

import abc
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from .exceptions import StoreException


class KeyValueCommands(abc.ABC):
    """Abstract storage engine exposing the commands used by vuln_sync"""

    @abc.abstractmethod
    async def json_set(self, key: str, doc: Any) -> None:
        """Store a JSON document at key, replacing any previous document"""

    @abc.abstractmethod
    async def json_get(self, key: str) -> Optional[Any]:
        """Return the JSON document at key, or None"""

    @abc.abstractmethod
    async def set_value(self, key: str, value: str) -> None:
        pass

    @abc.abstractmethod
    async def get_value(self, key: str) -> Optional[str]:
        pass

    @abc.abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys of any kind, returns how many existed"""

    @abc.abstractmethod
    def scan(self, prefix: str, count: int = 2000) -> AsyncIterator[str]:
        """Iterate over document and value keys starting with prefix"""

    @abc.abstractmethod
    async def lpush(self, key: str, *values: str) -> int:
        """Prepend values to the list at key, returns the new length"""

    @abc.abstractmethod
    async def rpop(self, key: str) -> Optional[str]:
        """Remove and return the tail (oldest) element"""

    @abc.abstractmethod
    async def lindex(self, key: str, index: int) -> Optional[str]:
        pass

    @abc.abstractmethod
    async def lset(self, key: str, index: int, value: str) -> None:
        """Overwrite an existing list element, raises StoreException if out of range"""

    @abc.abstractmethod
    async def llen(self, key: str) -> int:
        pass

    @abc.abstractmethod
    async def flush_all(self) -> None:
        """Discard every key, value, document and list"""

    async def execute(self, command: str, *args: str) -> Any:
        """
        Execute one script command

        Args:
            command: Verb, case insensitive (JSON.SET, SET, LPUSH, DEL, FLUSHALL)
            args: Verb arguments as strings

        Raises:
            StoreException: Unknown verb, wrong arity or invalid JSON
        """
        handlers: Dict[str, Callable[..., Awaitable[Any]]] = {
            'JSON.SET': self._execute_json_set,
            'SET': self._execute_set,
            'LPUSH': self._execute_lpush,
            'DEL': self._execute_del,
            'FLUSHALL': self._execute_flushall,
        }
        verb = command.upper()
        handler = handlers.get(verb)
        if handler is None:
            raise StoreException(f"ERR unknown command '{command}'", command=command)
        return await handler(*args)

    async def _execute_json_set(self, *args: str) -> None:
        if len(args) != 3:
            raise StoreException("ERR wrong number of arguments for 'JSON.SET'", command='JSON.SET')
        key, path, raw = args
        if path != '$':
            raise StoreException(f"ERR only the root path is supported, got '{path}'", command='JSON.SET')
        try:
            doc = json.loads(raw)
        except ValueError as e:
            raise StoreException(f"ERR invalid JSON for key {key}: {e}", command='JSON.SET') from e
        await self.json_set(key, doc)

    async def _execute_set(self, *args: str) -> None:
        if len(args) != 2:
            raise StoreException("ERR wrong number of arguments for 'SET'", command='SET')
        await self.set_value(args[0], args[1])

    async def _execute_lpush(self, *args: str) -> int:
        if len(args) < 2:
            raise StoreException("ERR wrong number of arguments for 'LPUSH'", command='LPUSH')
        return await self.lpush(args[0], *args[1:])

    async def _execute_del(self, *args: str) -> int:
        if not args:
            raise StoreException("ERR wrong number of arguments for 'DEL'", command='DEL')
        return await self.delete(*args)

    async def _execute_flushall(self, *args: str) -> None:
        if args:
            raise StoreException("ERR wrong number of arguments for 'FLUSHALL'", command='FLUSHALL')
        await self.flush_all()
