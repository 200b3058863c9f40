"""Plugin upload to the JetBrains marketplace."""

from __future__ import annotations

from pathlib import Path

import httpx

from .errors import UploadError
from .models import BranchContext
from .shell import hide, note

JETBRAINS_UPLOAD_URL = "https://plugins.jetbrains.com/plugin/uploadPlugin"
UPLOAD_SUCCESS = "plugin has been successfully uploaded"


def default_channel(ctx: BranchContext) -> str | None:
    """stable on trunk, beta on the integration branch, else None."""
    if ctx.is_trunk:
        return "stable"
    if ctx.is_integration:
        return "beta"
    return None


def find_plugin_zip(artifacts_dir: Path) -> Path | None:
    """The single .zip in `artifacts_dir`, or None if there is not exactly one."""
    if not artifacts_dir.is_dir():
        note(f"artifacts dir not found: {artifacts_dir}")
        return None
    zips = sorted(p for p in artifacts_dir.iterdir() if p.is_file() and p.name.endswith(".zip"))
    if not zips:
        note(f"no zip files found in artifacts dir: {artifacts_dir}")
        return None
    if len(zips) > 1:
        note(f"too many ({len(zips)}) zip files found in artifacts dir: {artifacts_dir}")
        return None
    return zips[0]


def upload_plugin(
    plugin_id: str,
    channel: str | None,
    zip_file: Path | None,
    token: str | None,
    *,
    client: httpx.Client | None = None,
    timeout: float = 300.0,
) -> bool:
    """Upload `zip_file` as a new version of `plugin_id`.

    A plugin id or token of "DRY" skips the upload.

    Returns:
        True if the upload was performed.

    Raises:
        UploadError: If the file is missing, no token is given, or the
            marketplace does not confirm the upload.
    """
    if zip_file is None or not zip_file.is_file():
        raise UploadError(f"the selected plugin upload zipfile can not be identified: {zip_file}")
    note(f"uploading plugin {plugin_id} to channel {channel} from file {zip_file}")
    if plugin_id == "DRY" or token == "DRY":
        note("DRY run: upload skipped")
        return False
    if not token:
        raise UploadError("no upload token given (JETBRAINS_PUBLISH_TOKEN)")

    data = {"pluginId": plugin_id}
    if channel:
        data["channel"] = channel
    client = client or httpx.Client(timeout=timeout)
    try:
        with zip_file.open("rb") as fh:
            response = client.post(
                JETBRAINS_UPLOAD_URL,
                headers={"Authorization": f"Bearer {token}"},
                data=data,
                files={"file": (zip_file.name, fh, "application/zip")},
            )
    except httpx.HTTPError as exc:
        raise UploadError(f"plugin upload failed (token {hide(token)}): {exc}") from exc

    note(f"upload plugin to JetBrains returned: {response.text}")
    if UPLOAD_SUCCESS not in response.text:
        raise UploadError(f"plugin upload failed: {response.text}")
    return True
