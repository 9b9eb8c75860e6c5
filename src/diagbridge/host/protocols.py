"""Protocol-based host collaborator interfaces.

Editor adapters and the standalone command host satisfy these
structurally (no inheritance). Test doubles can be plain classes or
mocks matching the same signatures (see ``diagbridge.host.fakes``).
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias

from diagbridge.diagnostics.events import DiagnosticChangeBatch, FileDiagnostics

Unsubscribe: TypeAlias = Callable[[], None]
ChangeHandler: TypeAlias = Callable[[DiagnosticChangeBatch], Awaitable[None]]
DeletionHandler: TypeAlias = Callable[[list[str]], Awaitable[None]]


class DiagnosticSource(Protocol):
    async def get_diagnostics(
        self, file_id: str | None = None
    ) -> list[FileDiagnostics]: ...
    def subscribe(self, handler: ChangeHandler) -> Unsubscribe: ...


class DocumentOpener(Protocol):
    """Materialize files into the analysis pipeline without any UI."""

    async def open_invisibly(self, file_id: str) -> None: ...
    async def release(self, file_id: str) -> None: ...


class WorkspaceEnumerator(Protocol):
    async def list_files(self) -> list[str]: ...


class WorkspaceFolderResolver(Protocol):
    def workspace_folder_for(self, file_id: str) -> str | None: ...


class DeletionSource(Protocol):
    def subscribe_deletions(
        self, handler: DeletionHandler
    ) -> Unsubscribe: ...
