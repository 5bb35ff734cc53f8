"""
Schema — Pydantic models for the expansion receipt.

One receipt per expanded host file, recording what was built for each
call site and with which command.  Environment override values are not
recorded, only their names.

Runtime contract fields (present in every receipt):
  package_name, package_version, schema_version.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from include_wasm import PACKAGE_NAME, SCHEMA_VERSION, __version__


class ArtifactRecord(BaseModel):
    path: str
    sha256: str
    size_bytes: int


class InvocationRecord(BaseModel):
    """One expanded call site."""

    location: str                     # file:line:column
    source_path: str
    resolved_path: str
    proposals: List[str] = Field(default_factory=list)
    release: bool = False
    env_names: List[str] = Field(default_factory=list)

    command: List[str] = Field(default_factory=list)
    target_dir: str
    duration_ms: int = 0

    artifact: ArtifactRecord
    module_fingerprint: str
    module_files: int = 0


class ExpansionReceipt(BaseModel):
    package_name: str = PACKAGE_NAME
    package_version: str = __version__
    schema_version: str = SCHEMA_VERSION

    host_file: str
    output_file: Optional[str] = None
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    invocations: List[InvocationRecord] = Field(default_factory=list)
