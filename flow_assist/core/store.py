"""
Flow persistence.

``FlowStore`` is the interface the rest of the package depends on.
``FileFlowStore`` keeps each flow as JSON in its own directory:

    <root>/<flow_id>/flow.json
    <root>/<flow_id>/assets/<file>
"""

import json
import logging
from pathlib import Path
from typing import List, Protocol, Union

from pydantic import ValidationError

from .types import FlowDocument

logger = logging.getLogger(__name__)

FLOW_FILENAME = "flow.json"
ASSETS_DIRNAME = "assets"


class StoreError(Exception):
    """Raised when reading or writing flows fails."""

    pass


class FlowNotFoundError(StoreError):
    """Raised when a flow id does not exist in the store."""

    pass


class FlowStore(Protocol):
    """Persistence collaborator used by the executor, interpreter and synthesizer."""

    def load(self, flow_id: str) -> FlowDocument: ...

    def save(self, flow: FlowDocument) -> None: ...

    def delete_asset(self, flow_id: str, path: str) -> None: ...

    def get_absolute_file_path(self, flow_id: str, relative_path: str) -> Path: ...

    def exists(self, path: Union[str, Path]) -> bool: ...

    def write_asset(self, flow_id: str, filename: str, data: bytes) -> str: ...


class FileFlowStore:
    """
    JSON-on-disk implementation of FlowStore.

    Args:
        root: Directory holding one sub-directory per flow
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def flow_dir(self, flow_id: str) -> Path:
        return self.root / flow_id

    def load(self, flow_id: str) -> FlowDocument:
        """
        Load a flow by id.

        Raises:
            FlowNotFoundError: If the flow does not exist
            StoreError: If the stored JSON cannot be parsed
        """
        flow_file = self.flow_dir(flow_id) / FLOW_FILENAME
        if not flow_file.is_file():
            raise FlowNotFoundError(f"Flow not found: {flow_id}")
        try:
            with open(flow_file, "r", encoding="utf-8") as f:
                return FlowDocument.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            raise StoreError(f"Failed to load flow {flow_id}: {e}")

    def save(self, flow: FlowDocument) -> None:
        flow_dir = self.flow_dir(flow.id)
        try:
            flow_dir.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first, then rename into place
            tmp_file = flow_dir / f"{FLOW_FILENAME}.tmp"
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(flow.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
            tmp_file.replace(flow_dir / FLOW_FILENAME)
        except OSError as e:
            raise StoreError(f"Failed to save flow {flow.id}: {e}")
        logger.debug(f"Saved flow {flow.id}")

    def create(self, title: str, description: str = "", language: str = "en", category: str = "") -> FlowDocument:
        """Create and persist an empty flow."""
        flow = FlowDocument(title=title, description=description, language=language, category=category)
        self.save(flow)
        return flow

    def list_flows(self) -> List[FlowDocument]:
        """All readable flows in the store, ordered by title."""
        if not self.root.is_dir():
            return []
        flows = []
        for flow_file in sorted(self.root.glob(f"*/{FLOW_FILENAME}")):
            try:
                flows.append(self.load(flow_file.parent.name))
            except StoreError as e:
                logger.warning(f"Skipping unreadable flow {flow_file.parent.name}: {e}")
        return sorted(flows, key=lambda f: f.title.casefold())

    def get_absolute_file_path(self, flow_id: str, relative_path: str) -> Path:
        return self.flow_dir(flow_id) / relative_path

    def exists(self, path: Union[str, Path]) -> bool:
        return Path(path).is_file()

    def write_asset(self, flow_id: str, filename: str, data: bytes) -> str:
        """
        Store an asset file for a flow.

        Returns:
            Path of the asset relative to the flow directory
        """
        relative_path = f"{ASSETS_DIRNAME}/{filename}"
        target = self.get_absolute_file_path(flow_id, relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StoreError(f"Failed to write asset {relative_path}: {e}")
        return relative_path

    def delete_asset(self, flow_id: str, path: str) -> None:
        """Delete an asset file; a missing file is not an error."""
        target = self.get_absolute_file_path(flow_id, path)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.debug(f"Asset already gone: {target}")
        except OSError as e:
            raise StoreError(f"Failed to delete asset {path}: {e}")
