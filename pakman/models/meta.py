"""Package metadata model."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict

from pakman.core.errors import StoreIOError, ValidationError


class Meta(BaseModel):
    """Identity and description of one package version.

    ``remote`` is the origin URI (scheme, host and path only) the package
    was pulled from.  It is empty for metadata read from a staging
    directory and stamped by ``AvailableDB.set_remote`` at pull time.

    Examples
    --------
    >>> m = Meta(name="heat", version="1.1.0", description="make heat",
    ...          remote="https://pkgs.example.com/linux/amd64")
    >>> m.pkg_filename
    'heat-1.1.0.pkg'
    >>> m.url
    'https://pkgs.example.com/linux/amd64/heat-1.1.0.pkg'
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    version: str = ""
    description: str = ""
    remote: str = ""

    def validate_required(self) -> Meta:
        """Return self if name, version and description are all non-empty.

        Raises
        ------
        ValidationError
            Naming the first missing field.
        """
        if not self.name:
            raise ValidationError("name cannot be empty")
        if not self.version:
            raise ValidationError("version cannot be empty")
        if not self.description:
            raise ValidationError("description cannot be empty")
        return self

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def pkg_filename(self) -> str:
        """Archive filename, ``<name>-<version>.pkg``."""
        return f"{self.name}-{self.version}.pkg"

    @property
    def url(self) -> str:
        """Download URL of the archive at this package's remote."""
        return f"{self.remote.rstrip('/')}/{self.pkg_filename}"


def load_meta_yaml(path: Path) -> Meta:
    """Parse and validate a ``meta.yaml`` file.

    Scalars are read as text, so ``version: 1.10`` stays ``"1.10"``.

    Raises
    ------
    ValidationError
        If the YAML is malformed, not a mapping, or lacks a required field.
    """
    try:
        raw = yaml.load(path.read_text(encoding="utf-8"), Loader=yaml.BaseLoader)
    except OSError as exc:
        raise StoreIOError(f"reading {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ValidationError(f"parsing {path.name}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ValidationError(f"{path.name} must be a mapping of name, version, description")

    fields = {
        key: str(raw[key]) if raw.get(key) is not None else ""
        for key in ("name", "version", "description")
    }
    try:
        return Meta(**fields).validate_required()
    except ValidationError as exc:
        raise ValidationError(f"invalid {path.name}: {exc}") from exc
