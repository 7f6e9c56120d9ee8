"""Deployable asset models (immutable once scanned)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator

from prismdeploy.models.manifest import AssetManifest


class AssetFile(BaseModel):
    """One deployable artifact.

    ``hash`` is the SHA-384 hex digest of ``content``.  The path is relative
    to the scanned root and always uses forward slashes.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: bytes = Field(repr=False)
    mime_type: str
    size: int
    hash: str


class DeploymentMetadata(BaseModel):
    """Identity of one deployment invocation."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    target: str = "unknown"
    environment: str = "production"
    branch: str | None = None
    commit_hash: str | None = None


class AssetBundle(BaseModel):
    """The unit of deployment: files in scan order plus their manifest.

    Constructed fresh for each deployment and never persisted.
    ``side_files`` holds host configuration (``_headers``, ``.nojekyll``,
    ``_config.yml``) to publish next to the manifest.
    """

    model_config = ConfigDict(frozen=True)

    files: list[AssetFile]
    manifest: AssetManifest | None = None
    side_files: dict[str, str] = Field(default_factory=dict)
    total_size: int
    metadata: DeploymentMetadata

    @model_validator(mode="after")
    def _check_total_size(self) -> AssetBundle:
        actual = sum(f.size for f in self.files)
        if self.total_size != actual:
            raise ValueError(
                f"total_size {self.total_size} does not match sum of file sizes {actual}"
            )
        return self

    def file_map(self) -> dict[str, bytes]:
        """Return ``path -> content`` in scan order."""
        return {f.path: f.content for f in self.files}

    def find(self, path: str) -> AssetFile | None:
        """Return the file at *path*, or None."""
        for f in self.files:
            if f.path == path:
                return f
        return None
