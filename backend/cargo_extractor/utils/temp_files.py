import os
import shutil
import uuid
from typing import Iterable, List, Optional

from cargo_extractor.logging_config import get_logger

logger = get_logger(__name__)


class TempResourceManager:
    """
    Owns the intermediate files created while serving one extraction request.

    Each request gets its own workspace directory (<root>/<request_id>), so
    concurrent requests never touch each other's page images. Use it as a
    context manager: cleanup runs exactly once when the block exits, whether
    it completed or raised.

        with TempResourceManager(settings.TEMP_IMAGES_DIR) as temp:
            paths = rasterize_pdf(pdf_path, temp.workspace)
            temp.register_for_cleanup(*paths)
    """

    def __init__(self, root_dir: str, request_id: Optional[str] = None):
        self.request_id = request_id or uuid.uuid4().hex
        self.workspace = os.path.join(root_dir, self.request_id)
        self._registered: List[str] = []

    def __enter__(self) -> "TempResourceManager":
        os.makedirs(self.workspace, exist_ok=True)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
        self._remove_workspace()

    @property
    def registered(self) -> List[str]:
        return list(self._registered)

    def register_for_cleanup(self, *paths: str) -> None:
        for path in paths:
            if path not in self._registered:
                self._registered.append(path)

    def cleanup(self, paths: Optional[Iterable[str]] = None) -> None:
        """
        Deletes the given paths, or every registered path when none are given.

        Missing files are skipped. Deletion errors are logged and never raised,
        so a failing cleanup cannot replace the error that ended the request.
        """
        targets = list(self._registered if paths is None else paths)
        removed = 0
        for path in targets:
            try:
                os.remove(path)
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(
                    "Could not remove temporary file",
                    extra={"extra_fields": {"path": path, "error": str(e)}},
                )
                continue
            if path in self._registered:
                self._registered.remove(path)

        if targets:
            logger.debug(
                "Temporary files cleaned up",
                extra={"extra_fields": {"requested": len(targets), "removed": removed}},
            )

    def _remove_workspace(self) -> None:
        # Also catches partial output a failing rasterizer never reported back.
        if not os.path.isdir(self.workspace):
            return
        try:
            shutil.rmtree(self.workspace)
        except OSError as e:
            logger.warning(
                "Could not remove request workspace",
                extra={"extra_fields": {"path": self.workspace, "error": str(e)}},
            )
