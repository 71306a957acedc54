"""
Windows servicing operations for wdspatch
-----------------------------------------

This module drives the Windows Deployment Services and DISM PowerShell
cmdlets that do the actual work of exporting, mounting, patching and
re-importing install images.  Every operation runs a short PowerShell
script in a child process; the script exits non-zero when the cmdlet
fails or returns no result, which is reported back as ``False``.

Features:
- Inventory of installed images via ``Get-WdsInstallImage``
- Export/import of images via ``Export-WdsInstallImage`` and
  ``Import-WdsInstallImage``
- Offline servicing via ``Mount-WindowsImage``, ``Add-WindowsPackage``
  and ``Dismount-WindowsImage``
- Support for dry-run mode (mutating operations are only logged)
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import List, Optional

from .models import ImageDescriptor
from .servicing_base import ServicingBase, ServicingError

# Exit code used by the generated scripts when a cmdlet returned nothing.
NO_RESULT_EXIT_CODE = 3

# Windows PowerShell writes redirected output in the OEM code page otherwise.
UTF8_OUTPUT = "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "

_INVENTORY_FIELDS = ("ImageName", "FileName", "ImageGroup", "Index", "UnattendFile")


def ps_quote(value: object) -> str:
    """Quote a value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def _expect_result(command: str) -> str:
    """Wrap a cmdlet so that an empty result fails the script."""
    return (
        f"$result = {command}; "
        f"if (-not $result) {{ exit {NO_RESULT_EXIT_CODE} }}; "
        "$result | Out-String"
    )


class ServicingOps(ServicingBase):
    """PowerShell-backed servicing operations."""

    def __init__(self, dry_run: bool = False, powershell: str = "powershell.exe") -> None:
        """Initialize Windows servicing operations.

        Parameters
        ----------
        dry_run : bool
            If True, log mutating actions without executing them.  The
            read-only inventory query still runs.
        powershell : str
            PowerShell executable to invoke.
        """
        super().__init__(dry_run=dry_run)
        self.powershell = powershell
        self.logger = logging.getLogger("wdspatch.servicing.windows")

    def check_admin_privileges(self) -> bool:
        """Check if running with administrator privileges.

        Returns
        -------
        bool
            True if running as administrator.
        """
        try:
            import ctypes
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (ImportError, AttributeError, OSError) as exc:
            self.logger.warning("Could not check admin privileges: %s", exc)
            return False

    def _run_powershell(self, script: str, mutating: bool = True) -> Optional[str]:
        """Execute a PowerShell script.

        Parameters
        ----------
        script : str
            Script text passed to ``-Command``.
        mutating : bool
            Whether the script changes system state.  Mutating scripts
            are skipped in dry-run mode.

        Returns
        -------
        str or None
            Script output if successful, None otherwise.  In dry-run mode
            mutating scripts return an empty string.
        """
        if self.dry_run and mutating:
            self.logger.info("[DRY-RUN] Would execute: %s", script)
            return ""

        self.logger.debug("powershell: %s", script)
        try:
            result = subprocess.run(
                [
                    self.powershell,
                    "-NoProfile",
                    "-NonInteractive",
                    "-Command",
                    "$ErrorActionPreference = 'Stop'; " + UTF8_OUTPUT + script,
                ],
                capture_output=True,
                text=True,
                check=True,
                encoding="utf-8",
                errors="replace",
            )
            return result.stdout
        except subprocess.CalledProcessError as exc:
            if exc.returncode == NO_RESULT_EXIT_CODE:
                self.logger.error("PowerShell command returned no result")
            else:
                self.logger.error(
                    "PowerShell command failed: %s\nOutput: %s", exc, exc.stderr
                )
            return None
        except FileNotFoundError:
            self.logger.error("%s not found. Are you running on Windows?", self.powershell)
            return None

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def list_images(self) -> List[ImageDescriptor]:
        """Return every install image known to Deployment Services.

        Raises
        ------
        ServicingError
            If the inventory cannot be queried or parsed.
        """
        script = (
            "Get-WdsInstallImage | Select-Object "
            + ",".join(_INVENTORY_FIELDS)
            + " | ConvertTo-Json -Compress"
        )
        output = self._run_powershell(script, mutating=False)
        if output is None:
            raise ServicingError("Could not query the Deployment Services inventory")
        return self.parse_inventory(output)

    @staticmethod
    def parse_inventory(output: str) -> List[ImageDescriptor]:
        """Parse ``ConvertTo-Json`` output into image descriptors.

        PowerShell emits a bare object for a single image, an array for
        several and nothing at all for an empty inventory.
        """
        text = output.strip()
        if not text:
            return []
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ServicingError(f"Unreadable image inventory: {exc}") from exc
        if isinstance(data, dict):
            data = [data]
        try:
            return [ImageDescriptor.from_inventory(record) for record in data]
        except (KeyError, TypeError, ValueError) as exc:
            raise ServicingError(f"Malformed image inventory record: {exc}") from exc

    # ------------------------------------------------------------------
    # Image operations
    # ------------------------------------------------------------------
    def export_image(
        self,
        image_name: str,
        file_name: str,
        image_group: str,
        destination: str,
        new_image_name: str,
    ) -> bool:
        command = (
            f"Export-WdsInstallImage -ImageName {ps_quote(image_name)}"
            f" -FileName {ps_quote(file_name)}"
            f" -ImageGroup {ps_quote(image_group)}"
            f" -Destination {ps_quote(destination)}"
            f" -NewImageName {ps_quote(new_image_name)}"
        )
        return self._run_powershell(_expect_result(command)) is not None

    def mount_image(
        self, image_path: str, mount_path: str, index: int, check_integrity: bool = True
    ) -> bool:
        command = (
            f"Mount-WindowsImage -ImagePath {ps_quote(image_path)}"
            f" -Path {ps_quote(mount_path)} -Index {int(index)}"
        )
        if check_integrity:
            command += " -CheckIntegrity"
        return self._run_powershell(_expect_result(command)) is not None

    def apply_package(self, package_path: str, mount_path: str) -> bool:
        command = (
            f"Add-WindowsPackage -PackagePath {ps_quote(package_path)}"
            f" -Path {ps_quote(mount_path)}"
        )
        return self._run_powershell(command) is not None

    def dismount_image(self, mount_path: str, save: bool = True) -> bool:
        command = f"Dismount-WindowsImage -Path {ps_quote(mount_path)}"
        command += " -Save" if save else " -Discard"
        return self._run_powershell(_expect_result(command)) is not None

    def import_image(
        self,
        image_group: str,
        path: str,
        new_image_name: str,
        unattend_file: Optional[str] = None,
        image_name: Optional[str] = None,
        display_order: int = 0,
    ) -> bool:
        command = (
            f"Import-WdsInstallImage -ImageGroup {ps_quote(image_group)}"
            f" -Path {ps_quote(path)}"
        )
        if unattend_file:
            command += f" -UnattendFile {ps_quote(unattend_file)}"
        if image_name:
            command += f" -ImageName {ps_quote(image_name)}"
        command += (
            f" -DisplayOrder {int(display_order)}"
            f" -NewImageName {ps_quote(new_image_name)}"
        )
        return self._run_powershell(_expect_result(command)) is not None
