"""
Session Repository - stores track sessions as compact binary files.

Sessions live in a folder as `.ctb` files and are decoded on demand.
Decoded sessions are cached in memory.
"""

import hashlib
import io
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from tracklog.models.activity import ActivityType
from tracklog.models.session import SessionSummary, TrackSession
from tracklog.services.binary import TrackFormatError
from tracklog.services.csv_parser import parse_track_csv
from tracklog.services.reader import read_session
from tracklog.services.writer import write_session


logger = logging.getLogger(__name__)

TRACK_SUFFIX = ".ctb"


class SessionRepository:
    """
    Repository for managing track sessions.

    Reads and writes `.ctb` files in a folder and caches decoded sessions.
    File access and cache updates are serialized with a lock.
    """

    def __init__(self, data_folder: Optional[Path] = None):
        """
        Initialize the repository.

        Args:
            data_folder: Folder containing .ctb files. If None, must be set later.
        """
        self._data_folder: Optional[Path] = data_folder
        self._cache: dict[int, TrackSession] = {}
        self._index: dict[int, Path] = {}  # id -> filepath mapping
        self._lock = threading.Lock()

        if data_folder is not None:
            self.scan_folder(data_folder)

    @property
    def data_folder(self) -> Optional[Path]:
        return self._data_folder

    @property
    def session_count(self) -> int:
        return len(self._index)

    def __contains__(self, session_id: int) -> bool:
        return session_id in self._index

    def set_data_folder(self, folder: Path) -> int:
        """
        Set the data folder and scan for session files.

        Returns:
            Number of session files found
        """
        self._data_folder = folder
        self._cache.clear()
        self._index.clear()
        return self.scan_folder(folder)

    def scan_folder(self, folder: Path) -> int:
        """
        Scan a folder for session files and build the index.

        Returns:
            Number of session files found
        """
        if not folder.exists():
            logger.warning(f"Data folder does not exist: {folder}")
            return 0

        count = 0
        for track_file in folder.glob(f"*{TRACK_SUFFIX}"):
            if track_file.is_file():
                session_id = self._filepath_to_id(track_file)
                self._index[session_id] = track_file
                count += 1
                logger.debug(f"Indexed session: {session_id} -> {track_file.name}")

        logger.info(f"Scanned {count} session files in {folder}")
        return count

    def list_sessions(self) -> list[SessionSummary]:
        """
        List all readable sessions, newest first.

        Files that fail to decode are logged and left out.
        """
        summaries = []

        for session_id in list(self._index):
            session = self.get_session(session_id)
            if session is not None:
                summaries.append(SessionSummary.from_session(session))

        summaries.sort(key=lambda s: (s.recorded_at, s.title), reverse=True)
        return summaries

    def get_session(self, session_id: int) -> Optional[TrackSession]:
        """
        Get a session by ID.

        Returns:
            TrackSession if found and decodable, None otherwise
        """
        if session_id in self._cache:
            return self._cache[session_id]

        if session_id not in self._index:
            return None

        filepath = self._index[session_id]
        try:
            return self._load_session(session_id, filepath)
        except (OSError, TrackFormatError) as e:
            logger.error(f"Failed to load session {session_id} from {filepath}: {e}")
            return None

    def read_raw(self, session_id: int) -> Optional[bytes]:
        """Encoded bytes of a stored session."""
        if session_id not in self._index:
            return None
        with self._lock:
            return self._index[session_id].read_bytes()

    def save_session(self, session: TrackSession) -> Path:
        """
        Encode a session into the data folder as `<id>.ctb`.

        Raises:
            RuntimeError: if no data folder is set
        """
        if self._data_folder is None:
            raise RuntimeError("No data folder set")

        buffer = io.BytesIO()
        written = write_session(session, buffer)

        filepath = self._data_folder / f"{session.id}{TRACK_SUFFIX}"
        with self._lock:
            filepath.write_bytes(buffer.getvalue())
            self._index[session.id] = filepath
            self._cache.pop(session.id, None)

        logger.info(f"Saved session {session.id} ({written} bytes) to {filepath.name}")
        return filepath

    def import_csv(
        self,
        csv_path: Path,
        activity_type: ActivityType = ActivityType.UNKNOWN,
        recorded_at: Optional[datetime] = None,
        title: Optional[str] = None,
        device: str = "",
    ) -> TrackSession:
        """Parse a CSV track, store it and return the decoded session."""
        session_id = self._next_id()
        session = parse_track_csv(
            csv_path,
            activity_type=activity_type,
            recorded_at=recorded_at,
            session_id=session_id,
            title=title,
            device=device,
        )
        self.save_session(session)
        return self.get_session(session_id)

    def delete_session(self, session_id: int) -> bool:
        if session_id not in self._index:
            return False
        with self._lock:
            filepath = self._index.pop(session_id)
            self._cache.pop(session_id, None)
            filepath.unlink(missing_ok=True)
        logger.info(f"Deleted session {session_id} ({filepath.name})")
        return True

    def clear_cache(self) -> None:
        """Clear the in-memory cache."""
        self._cache.clear()
        logger.info("Session cache cleared")

    def _load_session(self, session_id: int, filepath: Path) -> TrackSession:
        """Decode a session file and cache it."""
        with self._lock:
            with open(filepath, "rb") as f:
                session = read_session(f, session_id=session_id)
            self._cache[session_id] = session

        logger.debug(f"Loaded and cached session: {session_id}")
        return session

    def _next_id(self) -> int:
        return max(self._index, default=0) + 1

    def _filepath_to_id(self, filepath: Path) -> int:
        """Numeric file stems are ids; other names hash to a stable id."""
        if filepath.stem.isdigit():
            return int(filepath.stem)
        digest = hashlib.sha256(filepath.name.encode()).hexdigest()
        return int(digest[:15], 16)


# Global repository instance (set up by app initialization)
_repository: Optional[SessionRepository] = None


def get_repository() -> SessionRepository:
    """Get the global repository instance."""
    global _repository
    if _repository is None:
        _repository = SessionRepository()
    return _repository


def init_repository(data_folder: Path) -> SessionRepository:
    """Initialize the global repository with a data folder."""
    global _repository
    _repository = SessionRepository(data_folder)
    return _repository
