"""
Read-only rule and reference-data sources for the Payments Service.

YAML layout (strict):

    rules:
      - id: r-1
        code: CARD-STD
        name: Cardiology standard
        valid_from: 2024-01-01
        specialty_id: cardiology
        payment: {type: percentage, value: 40}
    reference:
      doctors: {d-1: Dr. Ana Soto}
      services: {s-1: Consultation}
      specialties: {cardiology: Cardiology}
      societies: {soc-1: Heart Partners}

`rules` must be a list of mappings; `reference` is optional.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from yaml import YAMLError, safe_load

from shared.errors import RepositoryError
from shared.logging import get_logger

from .rules.models import ReferenceData, Rule
from .rules.records import parse_rules

logger = get_logger("payments.repository")


class RuleRepository:
    """Source of the current active-rule collection."""

    def list_active_rules(self) -> List[Rule]:
        raise NotImplementedError

    def reference_data(self) -> ReferenceData:
        """Display-name lookups; ids are shown verbatim when absent."""
        return ReferenceData()


class InMemoryRuleRepository(RuleRepository):
    """Repository over an already-loaded rule snapshot."""

    def __init__(self, rules: Iterable[Rule] = (), reference: Optional["ReferenceDirectory"] = None):
        self._rules = tuple(rules)
        self._reference = reference

    def list_active_rules(self) -> List[Rule]:
        return [rule for rule in self._rules if rule.active]

    def reference_data(self) -> ReferenceData:
        if self._reference is None:
            return ReferenceData()
        return self._reference.to_reference_data()


@dataclass(frozen=True)
class ReferenceDirectory:
    """Display names keyed by id."""
    doctors: Mapping[str, str] = field(default_factory=dict)
    services: Mapping[str, str] = field(default_factory=dict)
    specialties: Mapping[str, str] = field(default_factory=dict)
    societies: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ReferenceDirectory":
        data = data or {}
        if not isinstance(data, Mapping):
            raise RepositoryError("'reference' must be a mapping")
        sections = {}
        for name in ("doctors", "services", "specialties", "societies"):
            section = data.get(name) or {}
            if not isinstance(section, Mapping):
                raise RepositoryError(f"reference.{name} must be a mapping of id -> name")
            sections[name] = {str(k): str(v) for k, v in section.items()}
        return cls(**sections)

    def to_reference_data(self) -> ReferenceData:
        return ReferenceData(
            doctor_by_id=self.doctors.get,
            service_by_id=self.services.get,
            specialty_by_id=self.specialties.get,
            society_by_id=self.societies.get,
        )


class YamlRuleRepository(RuleRepository):
    """Rules and reference data read from a YAML document on every call."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load_document(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as stream:
                parsed = safe_load(stream)
        except OSError as e:
            raise RepositoryError(
                f"Cannot read rules file: {self.path}", details={"error": str(e)}
            ) from e
        except YAMLError as e:
            raise RepositoryError(
                f"Rules file is not valid YAML: {self.path}", details={"error": str(e)}
            ) from e

        if not isinstance(parsed, dict) or "rules" not in parsed:
            raise RepositoryError("Rules file must contain a top-level 'rules' list.")
        if not isinstance(parsed["rules"], list):
            raise RepositoryError("'rules' must be a list of rule mappings.")
        return parsed

    def list_active_rules(self) -> List[Rule]:
        document = self._load_document()
        rules = parse_rules(document["rules"])
        active = [rule for rule in rules if rule.active]
        logger.debug("Rules loaded", path=str(self.path), total=len(rules), active=len(active))
        return active

    def reference_directory(self) -> ReferenceDirectory:
        return ReferenceDirectory.from_mapping(self._load_document().get("reference"))

    def reference_data(self) -> ReferenceData:
        return self.reference_directory().to_reference_data()
