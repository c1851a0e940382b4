"""Record manager for loading, saving, and locking deployment records."""

import fcntl
import json
import os
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from chain_deploy.state.models import DeploymentRecord
from chain_deploy.utils.errors import StateError, StateLockError


class StateNotFoundError(StateError):
    """Exception raised when the record file does not exist."""


class RecordManager:
    """Persists a DeploymentRecord as JSON with atomic writes and file locking."""

    def __init__(self, record_path: str):
        """
        Initialize RecordManager.

        Args:
            record_path: Path to the record file
        """
        self.record_path = Path(record_path)
        self._lock_file: Optional[int] = None

    def exists(self) -> bool:
        """Check if the record file exists."""
        return self.record_path.exists()

    def load(self) -> DeploymentRecord:
        """
        Load the record from file.

        Returns:
            DeploymentRecord

        Raises:
            StateNotFoundError: If the record file does not exist
            StateError: If the record file is corrupted or invalid
        """
        if not self.exists():
            raise StateNotFoundError(f"Record file not found: {self.record_path}")

        try:
            with open(self.record_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Failed to parse record file: {e}", cause=e)
        except OSError as e:
            raise StateError(f"Failed to read record file: {e}", cause=e)

        try:
            return DeploymentRecord.model_validate(data)
        except ValidationError as e:
            raise StateError(f"Invalid record file {self.record_path}: {e}", cause=e)

    def load_or_create(self, plan_name: str, network: str) -> DeploymentRecord:
        """
        Load the record, or return a new empty one on first run.

        The empty record is not written until the first step completes.

        Raises:
            StateError: If an existing record belongs to another plan or network
        """
        if not self.exists():
            return DeploymentRecord(plan_name=plan_name, network=network)

        record = self.load()
        if record.plan_name != plan_name or record.network != network:
            raise StateError(
                f"Record {self.record_path} belongs to plan '{record.plan_name}' "
                f"on '{record.network}', not '{plan_name}' on '{network}'"
            )
        return record

    def save(self, record: DeploymentRecord) -> None:
        """
        Save the record to file.

        The record is written to a temporary file, flushed to disk and then
        renamed over the previous file, so readers never observe a partial write.

        Raises:
            StateError: If the record cannot be saved
        """
        self.record_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.record_path.with_suffix(".tmp")

        try:
            with open(temp_path, "w") as f:
                f.write(record.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())

            temp_path.replace(self.record_path)
        except OSError as e:
            raise StateError(f"Failed to save record file: {e}", cause=e)

    def lock(self, timeout: float = 30) -> None:
        """
        Acquire exclusive lock on the record file.

        Args:
            timeout: Lock timeout in seconds

        Raises:
            StateLockError: If lock cannot be acquired
        """
        lock_path = self.record_path.with_suffix(".lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock_file = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self._lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.time() - start_time > timeout:
                    os.close(self._lock_file)
                    self._lock_file = None
                    raise StateLockError(
                        f"Failed to acquire lock on {self.record_path} after {timeout}s",
                        suggestions=["Check for another deploy running against the same record"]
                    )
                time.sleep(0.1)

    def unlock(self) -> None:
        """Release lock on the record file."""
        if self._lock_file is not None:
            try:
                fcntl.flock(self._lock_file, fcntl.LOCK_UN)
                os.close(self._lock_file)
            finally:
                self._lock_file = None

    def __enter__(self):
        """Context manager entry - acquire lock."""
        self.lock()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - release lock."""
        self.unlock()
