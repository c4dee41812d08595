"""Persona catalog lookup.

Loads persona definitions from YAML files in the personas directory
(config/personas/ by default). Each file defines one simulated interviewer:
identity, tone, specialty and typical questions.

The session engine only reads personas; creating or editing them is the
catalog owner's concern.
"""

from pathlib import Path
from typing import Dict, Iterable, Optional

import structlog
import yaml
from pydantic import ValidationError

from interview_practice.core.exceptions import ConfigurationError, PersonaNotFoundError
from interview_practice.domain.models.persona import Persona

log = structlog.get_logger(__name__)


class PersonaCatalog:
    """Read-only persona lookup backed by a directory of YAML files.

    Loaded personas are cached per catalog instance; personas don't change at
    runtime.
    """

    def __init__(self, personas_dir: Optional[Path] = None):
        self.personas_dir = Path(personas_dir) if personas_dir else None
        self._cache: Dict[str, Persona] = {}

    @classmethod
    def from_personas(cls, personas: Iterable[Persona]) -> "PersonaCatalog":
        """Build an in-memory catalog (no directory)."""
        catalog = cls()
        for persona in personas:
            catalog._cache[persona.id] = persona
        return catalog

    def _persona_file(self, persona_id: str) -> Optional[Path]:
        if self.personas_dir is None:
            return None
        # Persona ids are file stems; reject anything that could walk out of the directory
        if not persona_id or "/" in persona_id or "\\" in persona_id or persona_id.startswith("."):
            return None
        for suffix in (".yaml", ".yml"):
            candidate = self.personas_dir / f"{persona_id}{suffix}"
            if candidate.exists():
                return candidate
        return None

    def _load_file(self, persona_file: Path) -> Persona:
        with open(persona_file) as f:
            data = yaml.safe_load(f) or {}
        data.setdefault("id", persona_file.stem)
        # Lookup resolves ids to file names, so the two must agree
        if data["id"] != persona_file.stem:
            raise ConfigurationError(
                f"Persona file {persona_file} declares id {data['id']!r}; "
                f"expected {persona_file.stem!r}"
            )
        try:
            return Persona(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid persona file {persona_file}: {e}") from e

    def get(self, persona_id: str) -> Persona:
        """Look up a persona by id.

        Raises:
            PersonaNotFoundError: If no persona with this id exists
            ConfigurationError: If the persona file fails validation
        """
        if persona_id in self._cache:
            return self._cache[persona_id]

        persona_file = self._persona_file(persona_id)
        if persona_file is None:
            raise PersonaNotFoundError(f"Persona {persona_id} not found")

        persona = self._load_file(persona_file)
        self._cache[persona_id] = persona
        log.info("persona_loaded", persona_id=persona_id, name=persona.name)
        return persona

    def list_personas(self) -> Dict[str, str]:
        """Map persona_id to persona name for every available persona."""
        personas = {pid: p.name for pid, p in self._cache.items()}
        if self.personas_dir is None or not self.personas_dir.exists():
            return personas

        for persona_file in sorted(self.personas_dir.glob("*.y*ml")):
            if persona_file.stem in personas:
                continue
            try:
                persona = self._load_file(persona_file)
            except (OSError, yaml.YAMLError, ConfigurationError) as e:
                log.warning("failed_to_load_persona", file=str(persona_file), error=str(e))
                continue
            self._cache[persona.id] = persona
            personas[persona.id] = persona.name

        return personas

    def clear_cache(self) -> None:
        """Drop cached personas (mainly for testing)."""
        if self.personas_dir is not None:
            self._cache = {}
