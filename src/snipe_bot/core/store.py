"""State store owned by the orchestrator: settings, ladders and candidates."""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import SettingsImportError
from .models import Ladder, ScoredCandidate, Settings
from .state_lock import VersionedState

logger = logging.getLogger(__name__)


class CandidateList(BaseModel):
    """Ranked candidates published by the most recent successful scan."""

    sequence: int = Field(default=0, description="Scan cycle that produced this list")
    published_at: Optional[datetime] = None
    candidates: List[ScoredCandidate] = Field(default_factory=list)


class StateStore:
    """
    The only owner of mutable shared state.

    Settings (including the ladder map) and the candidate list each live in
    a ``VersionedState`` cell. Components never touch fields directly: they
    read copies and write through ``update_settings``, ``update_ladder``,
    ``publish_candidates`` or ``import_json``.
    """

    def __init__(self, settings: Optional[Settings] = None, path: Optional[Path] = None):
        """Initialize state store."""
        self.path = Path(path) if path else None
        self._settings: VersionedState[Settings] = VersionedState("settings", settings or Settings())
        self._candidates: VersionedState[CandidateList] = VersionedState("candidates", CandidateList())

    @classmethod
    def load(cls, path: Path) -> "StateStore":
        """Load settings from ``path``; fall back to defaults if unreadable."""
        path = Path(path)
        settings = Settings()
        if path.exists():
            try:
                settings = Settings.model_validate_json(path.read_text(encoding="utf-8"))
                logger.info(f"Loaded settings from {path} ({len(settings.ladders)} ladders)")
            except (OSError, ValidationError) as e:
                logger.warning(f"Could not load settings from {path}, using defaults: {e}")
        return cls(settings, path)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings.read()

    async def update_settings(self, **changes: Any) -> Settings:
        """Apply field changes; the result is validated as a whole."""
        def apply(current: Settings) -> Settings:
            merged = current.model_dump()
            merged.update(changes)
            return Settings.model_validate(merged)

        updated = await self._settings.update(apply)
        self.save()
        return updated

    # ------------------------------------------------------------------
    # Ladders
    # ------------------------------------------------------------------

    def ladders(self) -> Dict[str, Ladder]:
        return self._settings.read().ladders

    def get_ladder(self, mint: str) -> Optional[Ladder]:
        return self.ladders().get(mint)

    async def update_ladder(
        self,
        mint: str,
        fn: Callable[[Optional[Ladder]], Optional[Ladder]],
    ) -> Optional[Ladder]:
        """
        Read-modify-write one ladder entry.

        ``fn`` gets a private copy of the current entry (or None) and returns
        the new entry, or None to leave the map unchanged. The full map is
        written back in one step and re-validated.
        """
        result: Dict[str, Optional[Ladder]] = {"ladder": None}

        def apply(current: Settings) -> Settings:
            ladders = dict(current.ladders)
            new_ladder = fn(ladders.get(mint))
            if new_ladder is None:
                result["ladder"] = ladders.get(mint)
                return current
            new_ladder = Ladder.model_validate(new_ladder.model_dump())
            ladders[mint] = new_ladder
            result["ladder"] = new_ladder
            return current.model_copy(update={"ladders": ladders})

        await self._settings.update(apply)
        self.save()
        return result["ladder"]

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def candidates(self) -> List[ScoredCandidate]:
        return self._candidates.read().candidates

    def candidate_list(self) -> CandidateList:
        return self._candidates.read()

    def find_candidate(self, mint: str) -> Optional[ScoredCandidate]:
        key = mint.lower()
        for candidate in self.candidates():
            if (candidate.mint or "").lower() == key:
                return candidate
        return None

    async def publish_candidates(self, sequence: int, candidates: List[ScoredCandidate]) -> bool:
        """
        Replace the candidate list if ``sequence`` is newer than the current one.

        Returns False when a later scan cycle has already published.
        """
        published = {"ok": False}

        def apply(current: CandidateList) -> CandidateList:
            if sequence <= current.sequence:
                return current
            published["ok"] = True
            return CandidateList(
                sequence=sequence,
                published_at=datetime.now(timezone.utc),
                candidates=list(candidates),
            )

        await self._candidates.update(apply)
        return published["ok"]

    # ------------------------------------------------------------------
    # Import / export / persistence
    # ------------------------------------------------------------------

    def export_json(self) -> str:
        return self._settings.read().model_dump_json(indent=2)

    async def import_json(self, text: str) -> Settings:
        """
        Apply a settings document all-or-nothing.

        Keys missing from the document (or set to null) keep their current
        values. Unknown keys are ignored. Raises SettingsImportError and
        leaves everything untouched if the merged document is invalid.
        """
        try:
            document = json.loads(text)
        except (TypeError, ValueError) as e:
            raise SettingsImportError(f"Settings document is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise SettingsImportError("Settings document must be a JSON object")

        known = Settings.model_fields
        unknown = sorted(k for k in document if k not in known)
        if unknown:
            logger.warning(f"Ignoring unknown settings keys: {unknown}")

        def apply(current: Settings) -> Settings:
            merged = current.model_dump()
            merged.update({k: v for k, v in document.items() if k in known and v is not None})
            try:
                return Settings.model_validate(merged)
            except ValidationError as e:
                raise SettingsImportError(f"Settings document rejected: {e}") from e

        imported = await self._settings.update(apply)
        self.save()
        logger.info(f"Imported settings ({len(imported.ladders)} ladders)")
        return imported

    def save(self) -> None:
        """Write settings to ``path`` atomically; no-op without a path."""
        if self.path is None:
            return
        payload = self.export_json()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Failed to persist settings to {self.path}: {e}")
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
