"""Errors that abort a generation pass."""

from __future__ import annotations

from typing import Optional


class GenerationError(RuntimeError):
    """Base class for errors raised while building the generation model."""

    context: Optional[str] = None

    def with_context(self, context: str) -> GenerationError:
        """Return the error attributed to a route context."""
        return self


class UnresolvedReferenceError(GenerationError):
    """Raised when a reference names a schema missing from the component table."""

    def __init__(
        self,
        name: str,
        *,
        referrer: Optional[str] = None,
        context: Optional[str] = None,
    ) -> None:
        self.name = name
        self.referrer = referrer
        self.context = context
        message = f"Unresolved reference to schema {name!r}"
        if referrer is not None:
            message += f" from {referrer!r}"
        if context is not None:
            message += f" in {context}"
        super().__init__(message)

    def with_context(self, context: str) -> UnresolvedReferenceError:
        return UnresolvedReferenceError(self.name, referrer=self.referrer, context=context)


class NameCollisionError(GenerationError):
    """Raised when distinct source names normalize to the same emitted identifier."""

    def __init__(
        self,
        identifier: str,
        sources: tuple[str, ...],
        *,
        context: Optional[str] = None,
    ) -> None:
        self.identifier = identifier
        self.sources = sources
        self.context = context
        joined = ", ".join(repr(source) for source in sources)
        message = f"Names {joined} all map to identifier {identifier!r}"
        if context is not None:
            message += f" in {context}"
        super().__init__(message)

    def with_context(self, context: str) -> NameCollisionError:
        return NameCollisionError(self.identifier, self.sources, context=context)


class UnsupportedSchemaError(GenerationError):
    """Raised when a schema uses a construct outside the supported type model."""

    def __init__(
        self,
        construct: str,
        *,
        schema_name: Optional[str] = None,
        context: Optional[str] = None,
    ) -> None:
        self.construct = construct
        self.schema_name = schema_name
        self.context = context
        message = f"Unsupported schema construct: {construct}"
        if schema_name is not None:
            message += f" (in {schema_name!r})"
        if context is not None:
            message += f" in {context}"
        super().__init__(message)

    def with_context(self, context: str) -> UnsupportedSchemaError:
        return UnsupportedSchemaError(
            self.construct,
            schema_name=self.schema_name,
            context=context,
        )
