"""Headless LibreOffice conversions (formula recalculation and local PDF export)."""

import logging
import subprocess
import tempfile
from pathlib import Path

from .config import Config
from .errors import TransientIOError

logger = logging.getLogger("seikyu.office")


def _convert(config: Config, source: Path, target_format: str, outdir: Path) -> Path:
    """Run ``libreoffice --convert-to`` and return the produced file."""
    profile = (config.temp_dir / "lo-profile").resolve()
    cmd = [
        config.office.binary,
        f"-env:UserInstallation={profile.as_uri()}",
        "--headless",
        "--convert-to",
        target_format,
        "--outdir",
        str(outdir),
        str(source),
    ]
    logger.debug("Running %s", " ".join(cmd))
    try:
        subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=config.office.timeout,
        )
    except FileNotFoundError as e:
        raise TransientIOError(f"LibreOffice binary not found: {config.office.binary}") from e
    except subprocess.TimeoutExpired as e:
        raise TransientIOError(
            f"LibreOffice conversion timed out after {config.office.timeout}s"
        ) from e
    except subprocess.CalledProcessError as e:
        raise TransientIOError(
            f"LibreOffice conversion failed (exit {e.returncode}): {(e.stderr or '').strip()}"
        ) from e

    extension = target_format.split(":", 1)[0]
    produced = outdir / f"{source.stem}.{extension}"
    if not produced.exists():
        raise TransientIOError(f"LibreOffice produced no {extension} output for {source.name}")
    return produced


def convert_bytes(config: Config, data: bytes, filename: str, target_format: str) -> bytes:
    """Convert document bytes to ``target_format`` in a scratch directory."""
    config.temp_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=config.temp_dir) as tmp:
        workdir = Path(tmp)
        source = workdir / filename
        source.write_bytes(data)
        outdir = workdir / "out"
        outdir.mkdir()
        return _convert(config, source, target_format, outdir).read_bytes()


def recalculate(config: Config, data: bytes, filename: str = "document.xlsx") -> bytes:
    """Round-trip an xlsx through LibreOffice so formula cells carry computed values."""
    return convert_bytes(config, data, filename, "xlsx")


def export_pdf(config: Config, data: bytes, filename: str = "document.xlsx") -> bytes:
    """Export a whole document to PDF with the local LibreOffice."""
    return convert_bytes(config, data, filename, "pdf")
