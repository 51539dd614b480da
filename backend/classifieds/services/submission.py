from contextlib import contextmanager
from enum import Enum
from typing import Optional

from classifieds.backends.base import MarketplaceBackend
from classifieds.errors import (
    AuthenticationError,
    InputError,
    PersistenceError,
    Result,
    UploadError,
    as_marketplace_error,
    truncate_message,
)
from classifieds.models.listing import ListingDraft
from classifieds.renderer import switch_tab
from classifieds.services.toast import Notifier
from classifieds.state import POST_BUTTON_LABEL, AppState, ViewState
from classifieds.utils.storage import ImageUploader, image_too_large

UPLOADING_LABEL = "Uploading Image..."
SAVING_LABEL = "Saving Listing..."


class SubmitPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING_IMAGE = "uploading_image"
    SAVING_RECORD = "saving_record"


class SubmissionHandler:
    """Posts listings for the shared identity; button, form and toast belong to the posting visitor."""

    def __init__(
        self,
        backend: Optional[MarketplaceBackend],
        state: AppState,
        notifier: Notifier,
        uploader: Optional[ImageUploader] = None,
    ):
        self.backend = backend
        self.state = state
        self.notifier = notifier
        self.uploader = uploader or (ImageUploader(backend) if backend is not None else None)

    @staticmethod
    def _enter(view: ViewState, phase: SubmitPhase, label: Optional[str] = None):
        view.submit_phase = phase
        if label is not None:
            view.post_button.label = label

    @contextmanager
    def _busy(self, view: ViewState):
        view.post_button.disabled = True
        try:
            yield
        finally:
            view.post_button.disabled = False
            view.post_button.label = POST_BUTTON_LABEL
            view.submit_phase = SubmitPhase.IDLE

    def _reject(self, view: ViewState, error, message: str) -> Result:
        view.submit_phase = SubmitPhase.IDLE
        self.notifier.error(error.title, message, view)
        return Result.failure(error)

    def validate(self, draft: ListingDraft):
        if not self.state.user_id:
            raise AuthenticationError("Please wait for authentication to complete before posting.")
        # NaN fails this comparison as well.
        if not draft.price > 0:
            raise InputError("Price must be greater than zero.")
        if image_too_large(draft.image):
            raise UploadError("Image file is too large (max 5MB).")

    async def submit(self, draft: ListingDraft, view: ViewState) -> Result:
        view.form_values = draft.form_values()
        self._enter(view, SubmitPhase.VALIDATING)
        try:
            self.validate(draft)
        except (AuthenticationError, InputError, UploadError) as e:
            return self._reject(view, e, e.message)

        if self.backend is None or not self.backend.connected:
            view.submit_phase = SubmitPhase.IDLE
            self.notifier.error("System Error", "Database connection not ready.", view)
            return Result.failure(PersistenceError("Database connection not ready."))

        image_url = draft.image_url.strip()
        user_id = self.state.user_id
        with self._busy(view):
            try:
                if draft.image is not None:
                    self._enter(view, SubmitPhase.UPLOADING_IMAGE, UPLOADING_LABEL)
                    image_url = await self.uploader.upload(draft.image, user_id)

                self._enter(view, SubmitPhase.SAVING_RECORD, SAVING_LABEL)
                record = draft.to_record(image_url, user_id)
                await self.backend.insert_listing(record)
            except Exception as e:
                error = as_marketplace_error(e)
                print(f"[submit] Error during posting or upload: {error}")
                self.notifier.error("Error", f"Failed to post listing. Error: {truncate_message(error)}...", view)
                return Result.failure(error)

        self.notifier.show("Success!", "Your listing has been posted and is now live!", "success", view)
        view.form_values = {}
        # The new listing shows up once the realtime channel reports it.
        switch_tab(view, "buy")
        return Result.success(record)
