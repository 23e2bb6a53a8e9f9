"""Reference document resolution for generation requests."""

from collections.abc import Callable, Iterable

from orchestrator.cancellation import CancellationToken
from orchestrator.clients.base import DocumentStore
from orchestrator.exceptions import ProviderError, UploadError
from orchestrator.log import get_logger
from orchestrator.models import DocumentReference, PendingUpload, UploadFile
from orchestrator.types import NoticeLevel

logger = get_logger(__name__)


class DocumentContextResolver:
    """Working set of reference document ids for one session.

    Ids come from three sources: documents toggled by the user, names of
    files uploaded from the shortcut flow (which may still be uploading),
    and ids carried over from elsewhere in the UI. Pending names are
    resolved to ids whenever the document list is refreshed. A name is
    matched exactly and the first matching document wins.
    """

    def __init__(
        self, on_notice: Callable[[NoticeLevel, str], None] | None = None
    ) -> None:
        self._ids: list[int] = []
        self._pending: list[PendingUpload] = []
        self._documents: list[DocumentReference] = []
        self._uploaded_ids: list[int] = []
        self._on_notice = on_notice

    @property
    def pending_uploads(self) -> list[PendingUpload]:
        return list(self._pending)

    @property
    def documents(self) -> list[DocumentReference]:
        """Last authoritative document list."""
        return list(self._documents)

    def resolve(self) -> list[int]:
        """Deduplicated reference document ids, in selection order."""
        return list(self._ids)

    def names(self) -> list[str]:
        """Display names of the resolved and pending documents."""
        by_id = {doc.id: doc.name for doc in self._documents}
        names = [by_id[i] for i in self._ids if i in by_id]
        names.extend(p.name for p in self._pending if p.name not in names)
        return names

    def uploaded_names(self) -> list[str]:
        """Names of files uploaded (or reused) in this session that finished."""
        by_id = {doc.id: doc.name for doc in self._documents}
        names = [by_id[i] for i in self._uploaded_ids if i in self._ids and i in by_id]
        names.extend(p.name for p in self._pending if not p.uploading)
        return names

    def selected_names(self) -> list[str]:
        """Names of existing documents selected as context."""
        by_id = {doc.id: doc.name for doc in self._documents}
        return [
            by_id[i] for i in self._ids if i in by_id and i not in self._uploaded_ids
        ]

    def toggle(self, document_id: int) -> bool:
        """Toggle a document in or out of the working set.

        Returns:
            True if the document is now selected
        """
        if document_id in self._ids:
            self._ids.remove(document_id)
            return False
        self._ids.append(document_id)
        return True

    def carry_over(self, document_ids: Iterable[int]) -> None:
        """Fold ids selected elsewhere into the working set."""
        for document_id in document_ids:
            self._add(document_id)

    def add_pending_upload(self, name: str) -> None:
        """Track an upload by name until the document list knows its id."""
        if not any(p.name == name for p in self._pending):
            self._pending.append(PendingUpload(name=name))

    def upload_finished(self, name: str) -> None:
        for pending in self._pending:
            if pending.name == name:
                pending.uploading = False

    def drop_pending(self, name: str) -> None:
        self._pending = [p for p in self._pending if p.name != name]

    def clear(self) -> None:
        self._ids.clear()
        self._pending.clear()
        self._uploaded_ids.clear()

    def refresh(self, documents: list[DocumentReference]) -> list[int]:
        """Resolve pending upload names against a fresh document list.

        Resolving is idempotent: a name already folded in is not added
        twice, and a name that does not appear yet stays pending.

        Returns:
            The resolved id list
        """
        self._documents = list(documents)
        still_pending: list[PendingUpload] = []
        for pending in self._pending:
            match = self._find_by_name(pending.name)
            if match is None:
                still_pending.append(pending)
                continue
            logger.debug(f"Resolved upload {pending.name!r} to document {match.id}")
            self._add(match.id)
            self._mark_uploaded(match.id)
        self._pending = still_pending
        return self.resolve()

    async def upload_files(
        self,
        store: DocumentStore,
        files: list[UploadFile],
        token: CancellationToken | None = None,
    ) -> list[DocumentReference]:
        """Upload files, reusing same-name documents, and fold them in.

        Each upload is isolated: a failed file is dropped from the working
        set with an error notification and the others proceed.

        Returns:
            References for every file that is now part of the working set
        """
        token = token or CancellationToken("upload")
        self._documents = await token.run(store.list_documents())
        resolved: list[DocumentReference] = []

        for file in files:
            existing = self._find_by_name(file.name)
            if existing is not None:
                logger.info(
                    f"Reusing existing document {existing.id} for {file.name!r}"
                )
                self._notify(NoticeLevel.INFO, f'Using existing "{file.name}"')
                self._add(existing.id)
                resolved.append(existing)
                continue

            self.add_pending_upload(file.name)
            try:
                reference = await token.run(store.upload_document(file))
            except (UploadError, ProviderError) as e:
                logger.warning(f"Upload of {file.name!r} failed: {e}")
                self.drop_pending(file.name)
                self._notify(NoticeLevel.ERROR, f"Failed to upload {file.name}")
                continue

            self.upload_finished(file.name)
            self._documents.append(reference)
            resolved.append(reference)
            self._notify(NoticeLevel.SUCCESS, f"Uploaded {file.name}")

        try:
            self.refresh(await token.run(store.list_documents()))
        except ProviderError as e:
            logger.warning(f"Could not refresh documents after upload: {e}")
        # Fold uploads the listing does not show yet
        for reference in resolved:
            if reference.id not in self._ids:
                if all(doc.id != reference.id for doc in self._documents):
                    self._documents.append(reference)
                self._add(reference.id)
                self.drop_pending(reference.name)
        for reference in resolved:
            self._mark_uploaded(reference.id)
        return resolved

    def _find_by_name(self, name: str) -> DocumentReference | None:
        return next((doc for doc in self._documents if doc.name == name), None)

    def _add(self, document_id: int) -> None:
        if document_id not in self._ids:
            self._ids.append(document_id)

    def _mark_uploaded(self, document_id: int) -> None:
        if document_id not in self._uploaded_ids:
            self._uploaded_ids.append(document_id)

    def _notify(self, level: NoticeLevel, message: str) -> None:
        if self._on_notice is not None:
            self._on_notice(level, message)
