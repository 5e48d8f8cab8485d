import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from driftguard.config.models import DesiredSettings, DriftGuardConfig, RecordSchema, StoreSettings
from driftguard.state.models import Record, RecordSet
from driftguard.transport.local import LocalTransport

ASSEMBLY = "Contoso.Workflow, Version=1.0.0.0"


def entry(namespace: str, type_name: str = "*", authorized: Optional[str] = "True", assembly: str = ASSEMBLY) -> Dict:
    data = {"Assembly": assembly, "Namespace": namespace, "TypeName": type_name}
    if authorized is not None:
        data["Authorized"] = authorized
    return data


def record(namespace: str, type_name: str = "*", authorized: Optional[str] = "True") -> Record:
    return Record.from_entry(RecordSchema(), entry(namespace, type_name, authorized))


def record_set(*records: Record, name: Optional[str] = None) -> RecordSet:
    return RecordSet(records, name=name)


# r1..r4 from the reference scenario
R1 = entry("Contoso.Activities")
R2 = entry("Contoso.Rules")
R3 = entry("Contoso.Serialization", "Formatter")
R4 = entry("Legacy.Extensions")


class Fleet:
    """Per-host stores laid out as ``<root>/<host>/web.json``."""

    def __init__(self, root: Path):
        self.root = root
        self.template = str(root / "{host}" / "web.json")

    def path(self, host: str) -> Path:
        return self.root / host / "web.json"

    def write(self, host: str, entries: List[Dict], extra: Optional[Dict] = None) -> Path:
        document = {
            "appSettings": {"mode": "production"},
            "configuration": {"authorizedTypes": entries},
        }
        if extra:
            document.update(extra)
        return self.write_raw(host, json.dumps(document, indent=2).encode("utf-8"))

    def write_raw(self, host: str, raw: bytes) -> Path:
        path = self.path(host)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw)
        return path

    def read(self, host: str) -> Dict:
        return json.loads(self.path(host).read_text(encoding="utf-8"))

    def entries(self, host: str) -> List[Dict]:
        return self.read(host)["configuration"]["authorizedTypes"]

    def backups(self, host: str) -> List[Path]:
        return sorted((self.root / host).glob("web.json.*.bak"))


@pytest.fixture
def schema() -> RecordSchema:
    return RecordSchema()


@pytest.fixture
def fleet(tmp_path) -> Fleet:
    root = tmp_path / "hosts"
    root.mkdir()
    return Fleet(root)


@pytest.fixture
def config(fleet, tmp_path) -> DriftGuardConfig:
    return DriftGuardConfig(
        store=StoreSettings(path_template=fleet.template),
        desired=DesiredSettings(cache_dir=str(tmp_path / "cache")),
    )


@pytest.fixture
def transport(fleet) -> LocalTransport:
    return LocalTransport(fleet.template)


@pytest.fixture
def desired_file(tmp_path):
    def _write(records: List[Dict], name: str = "baseline", filename: Optional[str] = None) -> Path:
        path = tmp_path / (filename or f"{name}.json")
        path.write_text(
            json.dumps({"name": name, "description": "test set", "records": records}),
            encoding="utf-8",
        )
        return path

    return _write


@pytest.fixture(autouse=True)
def _reset_root_handlers():
    yield
    logging.getLogger().handlers.clear()
